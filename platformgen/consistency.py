"""Cross-artifact consistency pass.

Runs after every artifact is rendered and before anything is written.  Each
check collects all of its problems before raising, so one run reports every
broken reference of a kind at once.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .artifacts import Artifact, ArtifactFormat, ArtifactRef, ArtifactState, SecretReference
from .errors import PathCollisionError, UnreferencedSecretError, UnresolvedReferenceError

logger = logging.getLogger(__name__)

_MISSING = object()


class ConsistencyReport(BaseModel):
    """Outcome of a successful consistency pass."""

    artifacts: int = 0
    references: int = 0
    secrets: list[SecretReference] = Field(default_factory=list)


class ConsistencyChecker:
    """Validates references, secret consumers and path ownership."""

    def check(
        self, artifacts: list[Artifact], secrets: Iterable[SecretReference] = ()
    ) -> ConsistencyReport:
        """Validate *artifacts* and mark them ``validated``.

        Raises:
            PathCollisionError: If two generators staged the same path.
            UnresolvedReferenceError: If a ``depends_on`` reference does not
                resolve to an artifact of this run with the expected content.
            UnreferencedSecretError: If a secret has no consumer, or a
                consumer does not mention the secret.
        """
        by_path = self._index(artifacts)
        references = self._check_references(artifacts, by_path)
        merged = merge_secrets(secrets)
        self._check_secrets(artifacts, merged, by_path)

        for artifact in artifacts:
            artifact.transition(ArtifactState.VALIDATED)

        logger.debug(
            "Consistency pass OK: %d artifacts, %d references, %d secrets",
            len(artifacts),
            references,
            len(merged),
        )
        return ConsistencyReport(
            artifacts=len(artifacts), references=references, secrets=merged
        )

    # -- Checks ------------------------------------------------------------

    @staticmethod
    def _index(artifacts: list[Artifact]) -> dict[str, Artifact]:
        owners: dict[str, list[str]] = {}
        by_path: dict[str, Artifact] = {}
        for artifact in artifacts:
            owners.setdefault(artifact.path, []).append(artifact.generator)
            by_path[artifact.path] = artifact
        collisions = {path: gens for path, gens in owners.items() if len(gens) > 1}
        if collisions:
            raise PathCollisionError(collisions)
        return by_path

    def _check_references(
        self, artifacts: list[Artifact], by_path: dict[str, Artifact]
    ) -> int:
        problems: list[str] = []
        count = 0
        for artifact in artifacts:
            for ref in artifact.depends_on:
                count += 1
                problem = self._resolve(ref, by_path)
                if problem:
                    problems.append(f"{artifact.path} -> {ref.path}: {problem}")
        if problems:
            raise UnresolvedReferenceError(problems)
        return count

    def _resolve(self, ref: ArtifactRef, by_path: dict[str, Artifact]) -> str | None:
        """Return a description of what is wrong with *ref*, or ``None``."""
        target = by_path.get(ref.path)
        if target is None:
            return "not produced in this run"

        if ref.pointer is not None:
            if not target.format.structured:
                return f"pointer {ref.pointer} into a {target.format.value} artifact"
            value = resolve_pointer(structured_value(target), ref.pointer)
            if value is _MISSING:
                return f"nothing at {ref.pointer}"
            if value != ref.expected:
                return f"{ref.pointer} is {value!r}, expected {ref.expected!r}"

        if ref.contains is not None and ref.contains not in text_of(target):
            return f"does not contain {ref.contains!r}"
        return None

    def _check_secrets(
        self,
        artifacts: list[Artifact],
        secrets: list[SecretReference],
        by_path: dict[str, Artifact],
    ) -> None:
        problems: list[str] = []
        declared = {secret.logical_name for secret in secrets}

        for secret in secrets:
            if not secret.consumers:
                problems.append(f"secret {secret.logical_name} has no consumer")
                continue
            for path in secret.consumers:
                consumer = by_path.get(path)
                if consumer is None:
                    problems.append(f"secret {secret.logical_name}: consumer {path} not produced")
                elif secret.logical_name not in text_of(consumer):
                    problems.append(
                        f"secret {secret.logical_name}: consumer {path} never mentions it"
                    )

        for artifact in artifacts:
            for name in artifact.consumes_secrets:
                if name not in declared:
                    problems.append(f"{artifact.path} reads undeclared secret {name}")

        if problems:
            raise UnreferencedSecretError(problems)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def merge_secrets(secrets: Iterable[SecretReference]) -> list[SecretReference]:
    """Merge same-name references from different generators, keeping order."""
    merged: dict[str, SecretReference] = {}
    for secret in secrets:
        target = merged.setdefault(
            secret.logical_name, SecretReference(logical_name=secret.logical_name)
        )
        for path in secret.consumers:
            if path not in target.consumers:
                target.consumers.append(path)
    return list(merged.values())


def text_of(artifact: Artifact) -> str:
    """Rendered text of *artifact*, falling back to a raw text body."""
    if artifact.rendered is not None:
        return artifact.rendered
    if isinstance(artifact.body, str):
        return artifact.body
    return json.dumps(artifact.body, default=str)


def structured_value(artifact: Artifact) -> Any:
    """The body as it reads back from disk (tuples become lists)."""
    if artifact.rendered is None:
        return artifact.body
    if artifact.format is ArtifactFormat.JSON:
        return json.loads(artifact.rendered)
    return yaml.safe_load(artifact.rendered)


def resolve_pointer(document: Any, pointer: str) -> Any:
    """Follow a ``/``-separated *pointer*; list items are addressed by index."""
    node = document
    for part in (p for p in pointer.split("/") if p):
        if isinstance(node, dict):
            if part not in node:
                return _MISSING
            node = node[part]
        elif isinstance(node, list):
            try:
                node = node[int(part)]
            except (ValueError, IndexError):
                return _MISSING
        else:
            return _MISSING
    return node
