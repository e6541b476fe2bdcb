"""Main scaffolding orchestrator.

Takes a resolved :class:`~platformgen.config.Configuration` and runs the
whole pipeline: name registry, generator families (concurrently), rendering,
the consistency pass and finally the writer.  Nothing reaches the disk until
every artifact of every family has rendered and passed the consistency
checks.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from pydantic import BaseModel, Field

from ..artifacts import Artifact, GeneratorOutput, SecretReference
from ..config import Configuration
from ..consistency import ConsistencyChecker, ConsistencyReport
from ..naming import NameRegistry
from ..versions import ActionVersions
from ..writer import OutputWriter, WriteReport
from .base import ArtifactGenerator
from .gitops_gen import GitOpsGenerator
from .infrastructure_gen import InfrastructureGenerator
from .monorepo_gen import MonorepoGenerator
from .platform_gen import PlatformGenerator
from .templates import TemplateRenderer

logger = logging.getLogger(__name__)


class GenerationResult(BaseModel):
    """Everything one run produced."""

    artifacts: list[Artifact] = Field(default_factory=list)
    secrets: list[SecretReference] = Field(default_factory=list)
    consistency: ConsistencyReport | None = None
    write: WriteReport | None = None

    def by_path(self) -> dict[str, Artifact]:
        return {artifact.path: artifact for artifact in self.artifacts}


class ProjectGenerator:
    """Runs every generator family for one configuration.

    The generator is stateless between runs: each call builds a fresh name
    registry and fresh generator instances, so the same configuration always
    yields byte-identical artifacts.
    """

    def __init__(
        self,
        config: Configuration,
        renderer: TemplateRenderer | None = None,
        versions: ActionVersions | None = None,
    ) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer()
        self.versions = versions or ActionVersions.pinned()

    # -- Public API --------------------------------------------------------

    def names(self) -> NameRegistry:
        """Build and freeze the registry for this configuration."""
        registry = NameRegistry.for_configuration(self.config)
        registry.freeze()
        return registry

    def families(self, names: NameRegistry) -> list[ArtifactGenerator]:
        """Generator families that apply to the configuration."""
        selected: list[type[ArtifactGenerator]] = [
            PlatformGenerator,
            GitOpsGenerator,
            InfrastructureGenerator,
        ]
        if self.config.monorepo:
            selected.append(MonorepoGenerator)
        return [cls(self.config, names, self.renderer, self.versions) for cls in selected]

    async def stage(self, names: NameRegistry | None = None) -> list[GeneratorOutput]:
        """Run every family's ``generate`` on its own worker thread.

        Any exception propagates and the outputs of the other families are
        discarded with it.
        """
        names = names or self.names()
        families = self.families(names)
        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=len(families), thread_name_prefix="platformgen") as pool:
            outputs = await asyncio.gather(
                *(loop.run_in_executor(pool, family.generate) for family in families)
            )
        for output in outputs:
            logger.debug("%s staged %d artifacts", output.generator, len(output.artifacts))
        return list(outputs)

    async def build(self) -> GenerationResult:
        """Stage, render and validate every artifact without writing."""
        # 1. Names are fixed before any generator runs
        names = self.names()

        # 2. Generator families, concurrently
        outputs = await self.stage(names)
        artifacts = [artifact for output in outputs for artifact in output.artifacts]
        secrets = [secret for output in outputs for secret in output.secrets]

        # 3. Serialize every body
        self.renderer.render_all(artifacts)

        # 4. Cross-artifact consistency
        report = ConsistencyChecker().check(artifacts, secrets)
        return GenerationResult(artifacts=artifacts, secrets=report.secrets, consistency=report)

    async def generate(
        self, output_dir: str | Path, force: bool = False, dry_run: bool = False
    ) -> GenerationResult:
        """Build every artifact and commit the batch to *output_dir*.

        Raises:
            RenderError, UnresolvedReferenceError, PathCollisionError,
            NameCollisionError: The run is aborted before writing.
            WriteConflictError: Nothing was written.
        """
        result = await self.build()

        # 5. All-or-nothing write
        writer = OutputWriter(output_dir, force=force, dry_run=dry_run)
        result.write = writer.commit(result.artifacts)
        return result
