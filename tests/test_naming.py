"""Tests for the name registry (platformgen.naming)."""

from __future__ import annotations

import pytest

from platformgen.errors import NameCollisionError
from platformgen.naming import (
    MAX_NAME_LENGTH,
    WORKSPACES,
    NameRegistry,
    NameStyle,
    secret_key,
    slugify,
)

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# slugify / secret_key
# ---------------------------------------------------------------------------


class TestSlugify:
    def test_simple_name(self):
        assert slugify("Acme Store") == "acme-store"

    def test_special_chars(self):
        assert slugify("my_app.v2") == "my-app-v2"

    def test_consecutive_hyphens_collapsed(self):
        assert slugify("a -- b") == "a-b"

    def test_leading_trailing_hyphens_stripped(self):
        assert slugify("--acme--") == "acme"

    def test_empty_string(self):
        assert slugify("") == ""

    def test_long_names_are_truncated_with_a_stable_hash(self):
        long_a = "a" * 80
        long_b = "a" * 79 + "b"
        slug_a = slugify(long_a)
        assert len(slug_a) <= MAX_NAME_LENGTH
        assert slug_a == slugify(long_a)
        assert slug_a != slugify(long_b)


class TestSecretKey:
    def test_env_name_becomes_dns_key(self):
        assert secret_key("DATABASE_URL") == "database-url"
        assert secret_key("JWT_SECRET") == "jwt-secret"


# ---------------------------------------------------------------------------
# NameRegistry
# ---------------------------------------------------------------------------


class TestNameRegistry:
    def test_declare_and_resolve(self):
        registry = NameRegistry("Acme")
        assert registry.declare("api", "{project}-api") == "acme-api"
        assert registry.resolve("api") == "acme-api"

    def test_default_template(self):
        registry = NameRegistry("acme")
        assert registry.resolve("worker") == "acme-worker"

    @pytest.mark.parametrize(
        "style, template, expected",
        [
            (NameStyle.IDENTIFIER, "{project}-db", "acme_store_db"),
            (NameStyle.ENV, "database url", "DATABASE_URL"),
            (NameStyle.PATH, "Apps/My App", "apps/my-app"),
            (NameStyle.PACKAGE, "@{project}/Types", "@acme-store/types"),
            (NameStyle.HOST, "{project}-API.Example.com", "acme-store-api.example.com"),
        ],
    )
    def test_styles(self, style: NameStyle, template: str, expected: str):
        registry = NameRegistry("acme store")
        assert registry.declare("thing", template, style=style) == expected

    def test_identifier_never_starts_with_digit(self):
        registry = NameRegistry("1st")
        assert registry.declare("db", "{project}", style=NameStyle.IDENTIFIER) == "n_1st"

    def test_redeclaring_identically_is_a_no_op(self):
        registry = NameRegistry("acme")
        first = registry.declare("api", "{project}-api")
        assert registry.declare("api", "{project}-api") == first

    def test_redeclaring_differently_fails(self):
        registry = NameRegistry("acme")
        registry.declare("api", "{project}-api")
        with pytest.raises(NameCollisionError) as exc_info:
            registry.declare("api", "{project}-service")
        assert exc_info.value.concept == "api"

    def test_two_concepts_same_name_same_scope(self):
        registry = NameRegistry("acme")
        registry.declare("a", "{project}-x", scope="workload")
        with pytest.raises(NameCollisionError) as exc_info:
            registry.declare("b", "{project} x", scope="workload")
        assert exc_info.value.name == "acme-x"
        assert exc_info.value.concept == "b"

    def test_same_name_in_different_scopes_is_allowed(self):
        registry = NameRegistry("acme")
        registry.declare("namespace", "{project}", scope="namespace")
        assert registry.declare("argocd.project", "{project}", scope="argocd-project") == "acme"

    def test_frozen_registry_rejects_unknown_concepts(self):
        registry = NameRegistry("acme")
        registry.declare("api", "{project}-api")
        registry.freeze()
        assert registry.frozen
        assert registry.resolve("api") == "acme-api"
        with pytest.raises(NameCollisionError, match="frozen"):
            registry.resolve("worker")
        with pytest.raises(NameCollisionError):
            registry.declare("worker")

    def test_empty_project_name(self):
        with pytest.raises(ValueError):
            NameRegistry("???")

    def test_contains_and_snapshot(self):
        registry = NameRegistry("acme")
        registry.declare("api", "{project}-api")
        assert "api" in registry
        assert "web" not in registry
        assert registry.snapshot() == {"api": "acme-api"}


class TestRegistryForConfiguration:
    def test_minimal_catalog(self, minimal_config):
        registry = NameRegistry.for_configuration(minimal_config)
        snapshot = registry.snapshot()
        assert snapshot["api"] == "acme-api"
        assert snapshot["secret.database_url"] == "DATABASE_URL"
        assert "namespace" not in snapshot
        assert not any(concept.startswith("tf.") for concept in snapshot)

    def test_kubernetes_concepts(self, k8s_config):
        registry = NameRegistry.for_configuration(k8s_config)
        assert registry.resolve("namespace") == "acme"
        assert registry.resolve("api.secret") == "acme-api-secrets"
        assert registry.resolve("argocd.app.production") == "acme-production"
        assert registry.resolve("helm.chart") == "acme"
        assert registry.resolve("mesh.gateway") == "acme-gateway"
        assert registry.resolve("mesh.host") == "acme-api.example.com"

    def test_terraform_concepts(self, k8s_config):
        registry = NameRegistry.for_configuration(k8s_config)
        assert registry.resolve("tf.module.aws.network") == "aws_network"
        assert registry.resolve("tf.output.network.private_subnet_ids") == "private_subnet_ids"
        assert registry.resolve("tf.input.kubernetes.subnet_ids") == "subnet_ids"
        assert "tf.module.gcp.network" not in registry
        assert "tf.state.resource_group" not in registry
        assert "gcp.project.production" not in registry

    def test_cloud_resource_names(self, make_config):
        registry = NameRegistry.for_configuration(make_config(cloud="all"))
        assert registry.resolve("gcp.project.staging") == "acme-staging"
        assert registry.resolve("azure.resource_group.production") == "acme-production-rg"
        # aws owns the state backend when every provider is on
        assert "tf.state.resource_group" not in registry

        azure = NameRegistry.for_configuration(make_config(cloud="azure"))
        assert azure.resolve("tf.state.resource_group") == "acme-tfstate"

    def test_monorepo_concepts(self, make_config):
        registry = NameRegistry.for_configuration(make_config(monorepo=True))
        for group, name in WORKSPACES:
            assert registry.resolve(f"workspace.{name}") == f"{group}/{name}"
            assert registry.resolve(f"package.{name}") == f"@acme/{name}"

    def test_resolution_is_deterministic(self, full_config):
        first = NameRegistry.for_configuration(full_config).snapshot()
        second = NameRegistry.for_configuration(full_config).snapshot()
        assert first == second
