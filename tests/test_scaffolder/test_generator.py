"""Tests for the orchestrator (platformgen.scaffolder.generator)."""

from __future__ import annotations

import pytest

from platformgen.artifacts import ArtifactFormat, ArtifactState
from platformgen.errors import PathCollisionError
from platformgen.scaffolder.base import ArtifactGenerator
from platformgen.scaffolder.generator import ProjectGenerator

pytestmark = pytest.mark.unit


class TestFamilies:
    def test_monorepo_family_only_when_configured(self, minimal_config, full_config, renderer):
        def families(config):
            generator = ProjectGenerator(config, renderer)
            return [f.family for f in generator.families(generator.names())]

        assert families(minimal_config) == ["platform", "gitops", "infrastructure"]
        assert families(full_config) == ["platform", "gitops", "infrastructure", "monorepo"]

    def test_registry_is_frozen(self, minimal_config, renderer):
        assert ProjectGenerator(minimal_config, renderer).names().frozen


class TestBuild:
    async def test_full_configuration_is_consistent(self, full_config, renderer):
        result = await ProjectGenerator(full_config, renderer).build()

        assert result.consistency is not None
        assert result.consistency.artifacts == len(result.artifacts)
        assert result.consistency.references > 0
        assert result.write is None
        assert all(a.state is ArtifactState.VALIDATED for a in result.artifacts)
        assert {a.generator for a in result.artifacts} == {
            "platform",
            "gitops",
            "infrastructure",
            "monorepo",
        }

    async def test_minimal_configuration(self, minimal_config, renderer):
        result = await ProjectGenerator(minimal_config, renderer).build()
        paths = result.by_path()
        assert "package.json" in paths
        assert ".github/workflows/ci-cd.yml" in paths
        assert not any(p.startswith(("k8s/", "helm/", "infrastructure/")) for p in paths)

    async def test_secrets_are_merged_across_families(self, full_config, renderer):
        result = await ProjectGenerator(full_config, renderer).build()
        secrets = {s.logical_name: s.consumers for s in result.secrets}
        assert len(secrets) == len(result.secrets)
        consumers = secrets["DATABASE_URL"]
        assert "docker-compose.yml" in consumers
        assert ".github/workflows/deploy.yml" in consumers
        assert "k8s/base/deployment.yaml" in consumers

    async def test_deterministic(self, full_config, renderer):
        first = await ProjectGenerator(full_config, renderer).build()
        second = await ProjectGenerator(full_config, renderer).build()
        assert {a.path: a.rendered for a in first.artifacts} == {
            a.path: a.rendered for a in second.artifacts
        }

    async def test_path_collision_between_families(self, minimal_config, renderer, monkeypatch):
        class Intruder(ArtifactGenerator):
            family = "intruder"

            def build(self) -> None:
                self.stage("package.json", ArtifactFormat.JSON, {"name": "intruder"})

        generator = ProjectGenerator(minimal_config, renderer)
        original = generator.families

        def with_intruder(names):
            return [*original(names), Intruder(minimal_config, names, renderer)]

        monkeypatch.setattr(generator, "families", with_intruder)
        with pytest.raises(PathCollisionError) as exc_info:
            await generator.build()
        assert exc_info.value.paths == {"package.json": ["platform", "intruder"]}


class TestGenerate:
    async def test_writes_the_tree(self, k8s_config, renderer, output_dir):
        result = await ProjectGenerator(k8s_config, renderer).generate(output_dir)
        assert result.write is not None
        assert (output_dir / "k8s/base/deployment.yaml").is_file()
        assert (output_dir / ".platformgen/manifest.json").is_file()
        assert sorted(result.write.written) == sorted(result.by_path())

    async def test_dry_run(self, k8s_config, renderer, output_dir):
        result = await ProjectGenerator(k8s_config, renderer).generate(output_dir, dry_run=True)
        assert result.write.dry_run
        assert list(output_dir.iterdir()) == []
