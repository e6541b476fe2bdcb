"""Artifact generators and the orchestrator that runs them.

Each generator family stages artifacts in memory; :class:`ProjectGenerator`
runs them concurrently, renders and validates the result, then hands it to
the writer.
"""

from platformgen.scaffolder.base import ArtifactGenerator
from platformgen.scaffolder.generator import GenerationResult, ProjectGenerator
from platformgen.scaffolder.templates import TemplateRenderer

__all__ = [
    "ArtifactGenerator",
    "GenerationResult",
    "ProjectGenerator",
    "TemplateRenderer",
]
