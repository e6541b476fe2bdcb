"""Common plumbing for artifact generators.

Generators stage artifacts in memory; they never touch the filesystem.  Each
one reads the frozen :class:`~platformgen.config.Configuration` and
:class:`~platformgen.naming.NameRegistry` and returns a
:class:`~platformgen.artifacts.GeneratorOutput`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..artifacts import (
    Artifact,
    ArtifactFormat,
    ArtifactRef,
    GeneratorOutput,
    SecretReference,
)
from ..config import Configuration
from ..naming import NameRegistry
from ..versions import ActionVersions
from .templates import TemplateRenderer


class ArtifactGenerator:
    """Base class for one generator family (or a part of one)."""

    family: str = ""

    def __init__(
        self,
        config: Configuration,
        names: NameRegistry,
        renderer: TemplateRenderer,
        versions: ActionVersions | None = None,
    ) -> None:
        self.config = config
        self.names = names
        self.renderer = renderer
        self.versions = versions or ActionVersions.pinned()
        self._artifacts: list[Artifact] = []
        self._secrets: dict[str, SecretReference] = {}

    # -- Public API --------------------------------------------------------

    def generate(self) -> GeneratorOutput:
        """Stage every artifact of this family and return them."""
        self._artifacts = []
        self._secrets = {}
        self.build()
        return GeneratorOutput(
            generator=self.family,
            artifacts=list(self._artifacts),
            secrets=list(self._secrets.values()),
        )

    def build(self) -> None:
        """Populate the staged artifacts; implemented by subclasses."""
        raise NotImplementedError

    # -- Staging helpers ---------------------------------------------------

    def stage(
        self,
        path: str,
        fmt: ArtifactFormat,
        body: Any,
        *,
        depends_on: Iterable[ArtifactRef] = (),
        secrets: Iterable[str] = (),
        cloud_specific: bool = False,
    ) -> Artifact:
        artifact = Artifact(
            path=path,
            format=fmt,
            body=body,
            depends_on=list(depends_on),
            generator=self.family,
            consumes_secrets=list(secrets),
            cloud_specific=cloud_specific,
        )
        self._artifacts.append(artifact)
        return artifact

    def absorb(self, output: GeneratorOutput) -> None:
        """Take over the artifacts and secrets staged by a sub-generator."""
        for artifact in output.artifacts:
            artifact.generator = self.family
            self._artifacts.append(artifact)
        for secret in output.secrets:
            self.declare_secret(secret.logical_name, secret.consumers)

    def declare_secret(self, logical_name: str, consumers: Iterable[str]) -> None:
        """Record that *consumers* (artifact paths) read the named secret."""
        ref = self._secrets.setdefault(logical_name, SecretReference(logical_name=logical_name))
        for path in consumers:
            if path not in ref.consumers:
                ref.consumers.append(path)

    def secret_names(self, concepts: Iterable[str]) -> list[str]:
        return [self.names.resolve(concept) for concept in concepts]

    def template(self, template_path: str, **extra: Any) -> str:
        """Render a Jinja2 text template with the shared context plus *extra*."""
        return self.renderer.render_template(template_path, {**self.context(), **extra})

    def context(self) -> dict[str, Any]:
        """Template context shared by every text template."""
        return {
            "config": self.config,
            "project": self.names.resolve("project"),
            "api_name": self.names.resolve("api"),
            "package_manager": self.config.package_manager.value,
            "commands": package_manager_commands(self.config),
        }


# ---------------------------------------------------------------------------
# Package manager commands
# ---------------------------------------------------------------------------

_COMMANDS: dict[str, dict[str, str]] = {
    "npm": {
        "install": "npm ci",
        "install_prod": "npm ci --omit=dev",
        "run": "npm run",
        "exec": "npx",
        "lockfile": "package-lock.json",
        "audit": "npm audit --audit-level=high",
        "prune": "npm prune --omit=dev",
    },
    "yarn": {
        "install": "yarn install --frozen-lockfile",
        "install_prod": "yarn install --frozen-lockfile --production",
        "run": "yarn",
        "exec": "yarn",
        "lockfile": "yarn.lock",
        "audit": "yarn audit --level high",
        "prune": "yarn install --frozen-lockfile --production --ignore-scripts --prefer-offline",
    },
    "pnpm": {
        "install": "pnpm install --frozen-lockfile",
        "install_prod": "pnpm install --frozen-lockfile --prod",
        "run": "pnpm run",
        "exec": "pnpm exec",
        "lockfile": "pnpm-lock.yaml",
        "audit": "pnpm audit --audit-level high",
        "prune": "pnpm prune --prod",
    },
}


def package_manager_commands(config: Configuration) -> dict[str, str]:
    """Install/run/lockfile spellings for the configured package manager."""
    return dict(_COMMANDS[config.package_manager.value])
