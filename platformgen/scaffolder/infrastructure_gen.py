"""Infrastructure family: Terraform, Kubernetes, Helm, observability, mesh.

Each concern lives in its own sub-generator; this class decides which of
them apply to the configuration and gathers their output under one family
name.
"""

from __future__ import annotations

import logging

from .base import ArtifactGenerator
from .helm_gen import HelmGenerator
from .kubernetes_gen import KubernetesGenerator
from .observability_gen import ObservabilityGenerator
from .service_mesh_gen import ServiceMeshGenerator
from .terraform_gen import TerraformGenerator

logger = logging.getLogger(__name__)


class InfrastructureGenerator(ArtifactGenerator):
    """Generates infrastructure-as-code and cluster configuration."""

    family = "infrastructure"

    def sub_generators(self) -> list[ArtifactGenerator]:
        """Return the sub-generators enabled by the configuration, in order."""
        selected: list[type[ArtifactGenerator]] = []

        # 1. Terraform root + provider modules (cloud target set)
        if self.config.terraform_enabled:
            selected.append(TerraformGenerator)

        # 2. Kubernetes base manifests and environment overlays
        if self.config.kubernetes:
            selected.append(KubernetesGenerator)

        # 3. Helm chart (requires kubernetes)
        if self.config.helm:
            selected.append(HelmGenerator)

        # 4. Monitoring stack
        if self.config.observability:
            selected.append(ObservabilityGenerator)

        # 5. Istio policies (requires kubernetes)
        if self.config.service_mesh:
            selected.append(ServiceMeshGenerator)

        return [cls(self.config, self.names, self.renderer, self.versions) for cls in selected]

    def build(self) -> None:
        for generator in self.sub_generators():
            output = generator.generate()
            logger.debug(
                "%s staged %d artifacts", type(generator).__name__, len(output.artifacts)
            )
            self.absorb(output)
