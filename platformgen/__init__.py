"""platformgen -- scaffolds CI/CD, infrastructure and repository configuration.

Quick usage::

    from platformgen import ConfigResolver, ProjectGenerator

    config = ConfigResolver().resolve({"project_name": "acme", "kubernetes": True})
    result = await ProjectGenerator(config).generate("./acme")
"""

from platformgen.config import Configuration, ConfigResolver
from platformgen.scaffolder.generator import GenerationResult, ProjectGenerator

__version__ = "0.1.0"

__all__ = [
    "ConfigResolver",
    "Configuration",
    "GenerationResult",
    "ProjectGenerator",
]
