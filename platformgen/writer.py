"""Commits validated artifacts to disk.

The writer is the only component that touches the output tree.  It keeps a
manifest of the hashes it last wrote (``.platformgen/manifest.json``) so it
can tell a file it authored and nobody edited, which is safe to update, from
a file someone changed by hand, which is a conflict.

Writes are all-or-nothing per batch: conflicts are detected before anything
is written, every new file is first staged as a temporary file next to its
target, and only then are the temporaries renamed into place one by one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .artifacts import Artifact, ArtifactState
from .config import METADATA_DIR
from .errors import WriteConflictError
from .utils import content_hash, dump_json

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
MANIFEST_VERSION = 1


class WriteAction(str, Enum):
    WRITE = "write"
    SKIP = "skip"
    CONFLICT = "conflict"


class WriteDecision(BaseModel):
    """What the writer will do with one artifact, and why."""

    path: str
    action: WriteAction
    reason: str
    digest: str


class WriteReport(BaseModel):
    """Result of :meth:`OutputWriter.commit`."""

    written: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    dry_run: bool = False
    decisions: list[WriteDecision] = Field(default_factory=list)


class OutputWriter:
    """Plans and performs the write of one batch of artifacts.

    Args:
        output_dir: Root of the output tree.
        force: Overwrite files even when they differ from what this tool
            last wrote.
        dry_run: Plan only; never touch the disk.
    """

    def __init__(self, output_dir: str | Path, force: bool = False, dry_run: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.force = force
        self.dry_run = dry_run
        self.manifest_path = self.output_dir / METADATA_DIR / MANIFEST_NAME

    # -- Manifest ----------------------------------------------------------

    def load_manifest(self) -> dict[str, str]:
        """Return ``{path: sha256}`` of the files the last run wrote.

        A missing or unreadable manifest is treated as empty; every existing
        file then counts as foreign.
        """
        try:
            data = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable manifest %s: %s", self.manifest_path, exc)
            return {}
        files = data.get("files") if isinstance(data, dict) else None
        if not isinstance(files, dict):
            logger.warning("Ignoring malformed manifest %s", self.manifest_path)
            return {}
        return {str(path): str(digest) for path, digest in files.items()}

    # -- Planning ----------------------------------------------------------

    def plan(self, artifacts: list[Artifact]) -> list[WriteDecision]:
        """Decide, per artifact, whether to write, skip, or report a conflict."""
        manifest = self.load_manifest()
        decisions: list[WriteDecision] = []
        for artifact in artifacts:
            if artifact.rendered is None:
                raise ValueError(f"{artifact.path}: artifact has not been rendered")
            digest = content_hash(artifact.rendered)
            decisions.append(self._decide(artifact.path, digest, manifest))
        return decisions

    def _decide(self, path: str, digest: str, manifest: dict[str, str]) -> WriteDecision:
        target = self.output_dir / path
        blocker = self._blocking_path(target)
        if blocker is not None:
            return WriteDecision(
                path=path,
                action=WriteAction.CONFLICT,
                reason=f"{blocker.relative_to(self.output_dir).as_posix()} is in the way",
                digest=digest,
            )
        if not target.exists():
            return WriteDecision(path=path, action=WriteAction.WRITE, reason="new", digest=digest)

        on_disk = content_hash(target.read_bytes())
        if on_disk == digest:
            return WriteDecision(path=path, action=WriteAction.SKIP, reason="unchanged", digest=digest)
        if self.force:
            return WriteDecision(path=path, action=WriteAction.WRITE, reason="forced", digest=digest)
        if manifest.get(path) == on_disk:
            return WriteDecision(path=path, action=WriteAction.WRITE, reason="update", digest=digest)
        return WriteDecision(
            path=path, action=WriteAction.CONFLICT, reason="modified outside platformgen", digest=digest
        )

    def _blocking_path(self, target: Path) -> Path | None:
        """Return what stops *target* from being a regular file, if anything.

        That is the target itself when it is a directory, or the first
        parent below the output root that exists but is not a directory.
        """
        if target.is_dir():
            return target
        for parent in reversed(target.relative_to(self.output_dir).parents[:-1]):
            candidate = self.output_dir / parent
            if candidate.exists() and not candidate.is_dir():
                return candidate
        return None

    # -- Commit ------------------------------------------------------------

    def commit(self, artifacts: list[Artifact]) -> WriteReport:
        """Write the batch, or nothing at all.

        Raises:
            WriteConflictError: If any target holds content this tool did
                not author.  No file is written in that case.
        """
        decisions = self.plan(artifacts)
        by_path = {artifact.path: artifact for artifact in artifacts}

        conflicts = [d.path for d in decisions if d.action is WriteAction.CONFLICT]
        if conflicts:
            for decision in decisions:
                artifact = by_path[decision.path]
                if decision.action is WriteAction.CONFLICT:
                    artifact.transition(ArtifactState.CONFLICT)
                else:
                    artifact.transition(ArtifactState.REJECTED)
            raise WriteConflictError(conflicts)

        report = WriteReport(dry_run=self.dry_run, decisions=decisions)
        to_write = [d for d in decisions if d.action is WriteAction.WRITE]
        report.skipped = [d.path for d in decisions if d.action is WriteAction.SKIP]
        report.written = [d.path for d in to_write]
        if self.dry_run:
            return report

        self._write_all([(self.output_dir / d.path, by_path[d.path].rendered or "") for d in to_write])
        for decision in decisions:
            state = ArtifactState.WRITTEN if decision.action is WriteAction.WRITE else ArtifactState.SKIPPED
            by_path[decision.path].transition(state)

        self._update_manifest(decisions)
        logger.info("Wrote %d files, skipped %d", len(report.written), len(report.skipped))
        return report

    def _write_all(self, files: list[tuple[Path, str]]) -> None:
        """Stage every file as a temporary, then rename them into place."""
        staged: list[tuple[Path, Path]] = []
        try:
            for target, text in files:
                staged.append((_stage_file(target, text), target))
        except OSError:
            for temp, _ in staged:
                temp.unlink(missing_ok=True)
            raise

        for temp, target in staged:
            os.replace(temp, target)
            logger.debug("Wrote %s", target)

    def _update_manifest(self, decisions: list[WriteDecision]) -> None:
        previous = self.load_manifest()
        files = dict(previous)
        for decision in decisions:
            files[decision.path] = decision.digest
        files = dict(sorted(files.items()))
        if files == previous and self.manifest_path.exists():
            return
        document = {"version": MANIFEST_VERSION, "files": files}
        os.replace(_stage_file(self.manifest_path, dump_json(document)), self.manifest_path)


def _stage_file(target: Path, text: str) -> Path:
    """Write *text* to a temporary file in *target*'s directory."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        # mkstemp creates 0600 files; keep the target's mode when replacing it.
        mode = target.stat().st_mode & 0o777 if target.exists() else 0o644
        os.chmod(name, mode)
    except OSError:
        Path(name).unlink(missing_ok=True)
        raise
    return Path(name)
