"""Tests for the artifact model and its lifecycle (platformgen.artifacts)."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from platformgen.artifacts import (
    DEFAULT_OVERLAYS,
    Artifact,
    ArtifactFormat,
    ArtifactRef,
    ArtifactState,
    EnvironmentOverlay,
    ResourceLimits,
)
from platformgen.config import Environment

pytestmark = pytest.mark.unit


def _artifact(path: str = "k8s/base/service.yaml") -> Artifact:
    return Artifact(path=path, format=ArtifactFormat.YAML, body={"kind": "Service"})


class TestArtifactPath:
    @pytest.mark.parametrize(
        "path", ["/etc/passwd", "../outside.yaml", "k8s/../../x.yaml", "", "a\\b.yaml"]
    )
    def test_rejects_unsafe_paths(self, path: str):
        with pytest.raises(ValidationError):
            _artifact(path)

    def test_normalizes_redundant_segments(self):
        assert _artifact("k8s//base/./service.yaml").path == "k8s/base/service.yaml"


class TestArtifactFormat:
    def test_structured(self):
        assert ArtifactFormat.YAML.structured
        assert ArtifactFormat.JSON.structured
        assert not ArtifactFormat.HCL.structured
        assert not ArtifactFormat.DOCKERFILE.structured


class TestLifecycle:
    def test_happy_path(self):
        artifact = _artifact()
        assert artifact.state is ArtifactState.PLANNED
        for state in (ArtifactState.RENDERED, ArtifactState.VALIDATED, ArtifactState.WRITTEN):
            artifact.transition(state)
        assert artifact.state is ArtifactState.WRITTEN

    def test_render_error_is_terminal(self):
        artifact = _artifact()
        artifact.transition(ArtifactState.RENDER_ERROR)
        with pytest.raises(ValueError, match="cannot move from render_error"):
            artifact.transition(ArtifactState.RENDERED)

    def test_cannot_skip_validation(self):
        artifact = _artifact()
        artifact.transition(ArtifactState.RENDERED)
        with pytest.raises(ValueError):
            artifact.transition(ArtifactState.WRITTEN)

    def test_rejected_after_validation(self):
        artifact = _artifact()
        artifact.transition(ArtifactState.RENDERED)
        artifact.transition(ArtifactState.VALIDATED)
        artifact.transition(ArtifactState.REJECTED)
        assert artifact.state is ArtifactState.REJECTED


class TestArtifactRef:
    def test_is_hashable_and_frozen(self):
        ref = ArtifactRef(path="Chart.yaml", pointer="/name", expected="acme")
        assert ref in {ref}
        with pytest.raises(ValidationError):
            ref.path = "other"


class TestOverlays:
    def test_defaults_cover_every_environment(self):
        assert set(DEFAULT_OVERLAYS) == set(Environment)
        assert DEFAULT_OVERLAYS[Environment.PRODUCTION].replica_count == 5
        assert DEFAULT_OVERLAYS[Environment.DEVELOPMENT].image_tag == "latest"

    def test_replica_count_must_be_positive(self):
        with pytest.raises(ValidationError):
            EnvironmentOverlay(
                env_name=Environment.STAGING,
                replica_count=0,
                resource_limits=ResourceLimits(cpu="1", memory="1Gi"),
                image_tag="staging",
            )

    def test_limits_as_dict(self):
        assert ResourceLimits(cpu="500m", memory="512Mi").as_dict() == {
            "cpu": "500m",
            "memory": "512Mi",
        }
