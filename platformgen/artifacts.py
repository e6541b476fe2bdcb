"""Typed intermediate representation shared by generators, renderer and writer.

An :class:`Artifact` is one staged file: where it goes, what format it is in,
its body (a structured value for YAML/JSON, pre-formatted text otherwise) and
the cross-artifact references it relies on.  Artifacts only live for the
duration of one generation run.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import Environment


class ArtifactFormat(str, Enum):
    """Serialization format of an artifact body."""

    YAML = "yaml"
    HCL = "hcl"
    DOCKERFILE = "dockerfile"
    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"

    @property
    def structured(self) -> bool:
        """Whether the body is a structured value rather than raw text."""
        return self in (ArtifactFormat.YAML, ArtifactFormat.JSON)


class ArtifactState(str, Enum):
    """Lifecycle of a staged artifact."""

    PLANNED = "planned"
    RENDERED = "rendered"
    VALIDATED = "validated"
    RENDER_ERROR = "render_error"
    WRITTEN = "written"
    SKIPPED = "skipped"
    CONFLICT = "conflict"
    REJECTED = "rejected"


_TRANSITIONS: dict[ArtifactState, frozenset[ArtifactState]] = {
    ArtifactState.PLANNED: frozenset({ArtifactState.RENDERED, ArtifactState.RENDER_ERROR}),
    ArtifactState.RENDERED: frozenset(
        {ArtifactState.VALIDATED, ArtifactState.RENDER_ERROR, ArtifactState.REJECTED}
    ),
    ArtifactState.VALIDATED: frozenset(
        {
            ArtifactState.WRITTEN,
            ArtifactState.SKIPPED,
            ArtifactState.CONFLICT,
            ArtifactState.REJECTED,
        }
    ),
}


class ArtifactRef(BaseModel):
    """A reference from one artifact to another.

    ``path`` must be produced in the same run.  Optionally the referenced
    artifact must also hold ``expected`` at the ``/``-separated ``pointer`` (structured
    bodies) or contain the ``contains`` substring (text bodies).
    """

    model_config = ConfigDict(frozen=True)

    path: str
    pointer: str | None = None
    expected: Any = None
    contains: str | None = None


class SecretReference(BaseModel):
    """A secret, by name only, and the artifacts that read it."""

    logical_name: str
    consumers: list[str] = Field(default_factory=list)


class Artifact(BaseModel):
    """One generator-produced file, staged in memory."""

    path: str = Field(..., description="Relative POSIX path inside the output tree")
    format: ArtifactFormat
    body: Any = Field(..., description="Structured value (yaml/json) or pre-formatted text")
    depends_on: list[ArtifactRef] = Field(default_factory=list)
    generator: str = Field(default="", description="Generator family that staged it")
    consumes_secrets: list[str] = Field(default_factory=list)
    cloud_specific: bool = Field(
        default=False, description="Content varies with the cloud target"
    )
    state: ArtifactState = ArtifactState.PLANNED
    rendered: str | None = None

    @field_validator("path")
    @classmethod
    def _relative_posix_path(cls, value: str) -> str:
        path = PurePosixPath(value)
        if not value or path.is_absolute() or ".." in path.parts or "\\" in value:
            raise ValueError(f"artifact path must be relative and normalized: {value!r}")
        return str(path)

    def transition(self, state: ArtifactState) -> None:
        """Move to *state*, enforcing the lifecycle.

        Raises:
            ValueError: If the transition is not allowed.
        """
        allowed = _TRANSITIONS.get(self.state, frozenset())
        if state not in allowed:
            raise ValueError(
                f"{self.path}: cannot move from {self.state.value} to {state.value}"
            )
        self.state = state


class GeneratorOutput(BaseModel):
    """Everything one generator family staged."""

    generator: str
    artifacts: list[Artifact] = Field(default_factory=list)
    secrets: list[SecretReference] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Environment overlays
# ---------------------------------------------------------------------------


class ResourceLimits(BaseModel):
    """CPU / memory quantity pair."""

    model_config = ConfigDict(frozen=True)

    cpu: str
    memory: str

    def as_dict(self) -> dict[str, str]:
        return {"cpu": self.cpu, "memory": self.memory}


class EnvironmentOverlay(BaseModel):
    """Per-environment values layered over a base artifact.

    Overlays only carry scale/value fields; every name they patch comes from
    the base artifact.
    """

    model_config = ConfigDict(frozen=True)

    env_name: Environment
    replica_count: int = Field(..., ge=1)
    resource_limits: ResourceLimits
    image_tag: str = Field(..., min_length=1)


DEFAULT_OVERLAYS: dict[Environment, EnvironmentOverlay] = {
    Environment.DEVELOPMENT: EnvironmentOverlay(
        env_name=Environment.DEVELOPMENT,
        replica_count=1,
        resource_limits=ResourceLimits(cpu="500m", memory="512Mi"),
        image_tag="latest",
    ),
    Environment.STAGING: EnvironmentOverlay(
        env_name=Environment.STAGING,
        replica_count=3,
        resource_limits=ResourceLimits(cpu="500m", memory="512Mi"),
        image_tag="staging",
    ),
    Environment.PRODUCTION: EnvironmentOverlay(
        env_name=Environment.PRODUCTION,
        replica_count=5,
        resource_limits=ResourceLimits(cpu="2000m", memory="2Gi"),
        image_tag="stable",
    ),
}
