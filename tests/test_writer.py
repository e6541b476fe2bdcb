"""Tests for the all-or-nothing writer and its manifest (platformgen.writer)."""

from __future__ import annotations

import json
import stat

import pytest

from platformgen.artifacts import Artifact, ArtifactFormat, ArtifactState
from platformgen.consistency import ConsistencyChecker
from platformgen.errors import WriteConflictError
from platformgen.utils import content_hash
from platformgen.writer import MANIFEST_NAME, OutputWriter, WriteAction

pytestmark = pytest.mark.unit


@pytest.fixture
def batch(renderer):
    """Factory returning a rendered, validated batch of ``{path: text}`` artifacts."""

    def _batch(files: dict[str, str]) -> list[Artifact]:
        artifacts = [
            Artifact(path=path, format=ArtifactFormat.TEXT, body=text, generator="platform")
            for path, text in files.items()
        ]
        renderer.render_all(artifacts)
        ConsistencyChecker().check(artifacts)
        return artifacts

    return _batch


FILES = {"Makefile": "all:\n", "k8s/base/deployment.yaml": "kind: Deployment\n"}


def manifest(output_dir) -> dict[str, str]:
    document = json.loads((output_dir / ".platformgen" / MANIFEST_NAME).read_text(encoding="utf-8"))
    assert document["version"] == 1
    return document["files"]


class TestFreshTree:
    def test_writes_new_files_and_manifest(self, output_dir, batch):
        artifacts = batch(FILES)
        report = OutputWriter(output_dir).commit(artifacts)

        assert report.written == ["Makefile", "k8s/base/deployment.yaml"]
        assert report.skipped == []
        assert (output_dir / "k8s/base/deployment.yaml").read_text(encoding="utf-8") == "kind: Deployment\n"
        assert manifest(output_dir) == {path: content_hash(text) for path, text in FILES.items()}
        assert all(a.state is ArtifactState.WRITTEN for a in artifacts)

    def test_files_are_world_readable(self, output_dir, batch):
        OutputWriter(output_dir).commit(batch(FILES))
        mode = stat.S_IMODE((output_dir / "Makefile").stat().st_mode)
        assert mode == 0o644

    def test_no_temporaries_left_behind(self, output_dir, batch):
        OutputWriter(output_dir).commit(batch(FILES))
        assert not list(output_dir.rglob("*.tmp"))


class TestSecondRun:
    def test_identical_content_is_skipped(self, output_dir, batch):
        OutputWriter(output_dir).commit(batch(FILES))
        manifest_file = output_dir / ".platformgen" / MANIFEST_NAME
        before = manifest_file.stat().st_mtime_ns

        artifacts = batch(FILES)
        report = OutputWriter(output_dir).commit(artifacts)

        assert report.written == []
        assert report.skipped == sorted(FILES)
        assert all(a.state is ArtifactState.SKIPPED for a in artifacts)
        assert manifest_file.stat().st_mtime_ns == before

    def test_unedited_file_is_updated(self, output_dir, batch):
        OutputWriter(output_dir).commit(batch(FILES))
        report = OutputWriter(output_dir).commit(batch({**FILES, "Makefile": "all: build\n"}))

        assert report.written == ["Makefile"]
        assert (output_dir / "Makefile").read_text(encoding="utf-8") == "all: build\n"
        assert manifest(output_dir)["Makefile"] == content_hash("all: build\n")
        (decision,) = [d for d in report.decisions if d.path == "Makefile"]
        assert decision.reason == "update"

    def test_hand_edited_file_is_a_conflict(self, output_dir, batch):
        OutputWriter(output_dir).commit(batch(FILES))
        (output_dir / "k8s/base/deployment.yaml").write_text("kind: Edited\n", encoding="utf-8")

        artifacts = batch({**FILES, "Makefile": "all: build\n", "README.md": "# acme\n"})
        with pytest.raises(WriteConflictError) as exc_info:
            OutputWriter(output_dir).commit(artifacts)

        assert exc_info.value.paths == ["k8s/base/deployment.yaml"]
        assert (output_dir / "Makefile").read_text(encoding="utf-8") == "all:\n"
        assert not (output_dir / "README.md").exists()
        states = {a.path: a.state for a in artifacts}
        assert states["k8s/base/deployment.yaml"] is ArtifactState.CONFLICT
        assert states["README.md"] is ArtifactState.REJECTED

    def test_force_overwrites_the_edit(self, output_dir, batch):
        OutputWriter(output_dir).commit(batch(FILES))
        (output_dir / "Makefile").write_text("edited\n", encoding="utf-8")

        report = OutputWriter(output_dir, force=True).commit(batch(FILES))
        assert report.written == ["Makefile"]
        assert (output_dir / "Makefile").read_text(encoding="utf-8") == "all:\n"


class TestForeignFiles:
    def test_existing_file_without_manifest_conflicts(self, output_dir, batch):
        (output_dir / "Makefile").write_text("mine\n", encoding="utf-8")
        with pytest.raises(WriteConflictError):
            OutputWriter(output_dir).commit(batch(FILES))
        assert not (output_dir / "k8s").exists()

    def test_matching_foreign_file_is_skipped(self, output_dir, batch):
        (output_dir / "Makefile").write_text("all:\n", encoding="utf-8")
        report = OutputWriter(output_dir).commit(batch(FILES))
        assert report.skipped == ["Makefile"]

    def test_directory_at_target_is_a_conflict(self, output_dir, batch):
        (output_dir / "Makefile").mkdir()
        with pytest.raises(WriteConflictError) as exc_info:
            OutputWriter(output_dir, force=True).commit(batch(FILES))
        assert exc_info.value.paths == ["Makefile"]
        assert not (output_dir / "k8s").exists()

    def test_file_in_place_of_a_parent_directory_is_a_conflict(self, output_dir, batch):
        (output_dir / "k8s").write_text("not a directory\n", encoding="utf-8")
        decisions = OutputWriter(output_dir).plan(batch(FILES))
        (blocked,) = [d for d in decisions if d.action is WriteAction.CONFLICT]
        assert blocked.path == "k8s/base/deployment.yaml"
        assert blocked.reason == "k8s is in the way"

    def test_malformed_manifest_counts_as_empty(self, output_dir):
        (output_dir / ".platformgen").mkdir()
        (output_dir / ".platformgen" / MANIFEST_NAME).write_text("[1, 2", encoding="utf-8")
        assert OutputWriter(output_dir).load_manifest() == {}


class TestDryRun:
    def test_plans_without_touching_the_disk(self, output_dir, batch):
        artifacts = batch(FILES)
        report = OutputWriter(output_dir, dry_run=True).commit(artifacts)

        assert report.dry_run
        assert report.written == ["Makefile", "k8s/base/deployment.yaml"]
        assert list(output_dir.iterdir()) == []
        assert all(a.state is ArtifactState.VALIDATED for a in artifacts)

    def test_still_reports_conflicts(self, output_dir, batch):
        (output_dir / "Makefile").write_text("mine\n", encoding="utf-8")
        with pytest.raises(WriteConflictError):
            OutputWriter(output_dir, dry_run=True).commit(batch(FILES))


def test_plan_actions(output_dir, batch):
    (output_dir / "Makefile").write_text("mine\n", encoding="utf-8")
    decisions = OutputWriter(output_dir).plan(batch(FILES))
    assert [(d.path, d.action) for d in decisions] == [
        ("Makefile", WriteAction.CONFLICT),
        ("k8s/base/deployment.yaml", WriteAction.WRITE),
    ]


def test_unrendered_artifact_is_rejected(output_dir):
    artifact = Artifact(path="Makefile", format=ArtifactFormat.TEXT, body="all:\n")
    with pytest.raises(ValueError, match="has not been rendered"):
        OutputWriter(output_dir).commit([artifact])
