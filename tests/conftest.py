"""Shared pytest fixtures for the platformgen test suite.

Provides reusable fixtures for:
- Resolved configurations for the common option combinations
- Frozen name registries and a template renderer
- A throwaway output directory and a fake host project
- Staging a single generator and reading its rendered artifacts back
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from platformgen.config import Configuration, ConfigResolver
from platformgen.naming import NameRegistry
from platformgen.scaffolder.base import ArtifactGenerator
from platformgen.scaffolder.templates import TemplateRenderer


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Empty directory the generator writes into (auto-cleanup)."""
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def host_project(tmp_path: Path) -> Path:
    """An existing Node.js project with a scoped package name and a tsconfig."""
    root = tmp_path / "host"
    root.mkdir()
    (root / "package.json").write_text(
        json.dumps({"name": "@acme/storefront", "scripts": {"start": "node ."}}),
        encoding="utf-8",
    )
    (root / "tsconfig.json").write_text("{}", encoding="utf-8")
    return root


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def make_config() -> Callable[..., Configuration]:
    """Factory resolving an option bag; ``project_name`` defaults to ``acme``."""

    def _make(**options: Any) -> Configuration:
        options.setdefault("project_name", "acme")
        return ConfigResolver().resolve(options)

    return _make


@pytest.fixture
def minimal_config(make_config) -> Configuration:
    """Every optional feature switched off."""
    return make_config()


@pytest.fixture
def k8s_config(make_config) -> Configuration:
    """Kubernetes on AWS; Helm and the service mesh follow kubernetes."""
    return make_config(kubernetes=True, cloud="aws")


@pytest.fixture
def full_config(make_config) -> Configuration:
    """Everything on: the widest artifact set a single run can produce."""
    return make_config(
        kubernetes=True,
        cloud="all",
        security=True,
        observability=True,
        monorepo=True,
        typescript=True,
        package_manager="pnpm",
    )


# ---------------------------------------------------------------------------
# Scaffolder plumbing
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def renderer() -> TemplateRenderer:
    """A TemplateRenderer pointed at the packaged templates."""
    return TemplateRenderer()


def frozen_names(config: Configuration) -> NameRegistry:
    registry = NameRegistry.for_configuration(config)
    registry.freeze()
    return registry


@pytest.fixture
def names_for() -> Callable[[Configuration], NameRegistry]:
    """Factory returning the frozen registry a run would use for a config."""
    return frozen_names


@pytest.fixture
def stage(renderer: TemplateRenderer) -> Callable[..., StagedFiles]:
    """Run one generator class for a config and render its artifacts.

    Returns ``{path: artifact}``; the output's secrets are attached to the
    mapping as ``.secrets``.
    """

    def _stage(generator_cls: type[ArtifactGenerator], config: Configuration) -> StagedFiles:
        output = generator_cls(config, frozen_names(config), renderer).generate()
        renderer.render_all(output.artifacts)
        staged = StagedFiles((a.path, a) for a in output.artifacts)
        staged.secrets = {s.logical_name: s.consumers for s in output.secrets}
        return staged

    return _stage


class StagedFiles(dict):
    """``{path: Artifact}`` plus the declared ``{secret: consumers}``."""

    secrets: dict[str, list[str]]

    def yaml(self, path: str) -> Any:
        return yaml.safe_load(self[path].rendered)

    def json(self, path: str) -> Any:
        return json.loads(self[path].rendered)

    def text(self, path: str) -> str:
        return self[path].rendered
