"""Tests for the Kubernetes base and overlays (platformgen.scaffolder.kubernetes_gen)."""

from __future__ import annotations

import pytest

from platformgen.artifacts import ArtifactFormat
from platformgen.config import Environment
from platformgen.naming import secret_key
from platformgen.scaffolder.kubernetes_gen import K8S_BASE_DIR, KubernetesGenerator, overlay_dir
from platformgen.scaffolder.overlays import (
    ALLOWED_OVERLAY_FIELDS,
    apply_overlay,
    changed_fields,
    environment_deployment,
    overlay_for,
)

pytestmark = pytest.mark.unit

BASE_FILES = (
    "namespace.yaml",
    "serviceaccount.yaml",
    "configmap.yaml",
    "deployment.yaml",
    "service.yaml",
    "hpa.yaml",
    "networkpolicy.yaml",
)


@pytest.fixture
def staged(stage, k8s_config):
    return stage(KubernetesGenerator, k8s_config)


class TestLayout:
    def test_base_and_overlay_files(self, staged):
        for filename in BASE_FILES + ("kustomization.yaml",):
            assert f"{K8S_BASE_DIR}/{filename}" in staged
        for env in Environment:
            directory = overlay_dir(env.value)
            assert f"{directory}/kustomization.yaml" in staged
            assert f"{directory}/deployment-patch.yaml" in staged
            assert f"{directory}/secrets.env.example" in staged

    def test_family_and_formats(self, staged):
        assert {a.generator for a in staged.values()} == {"infrastructure"}
        assert staged[f"{K8S_BASE_DIR}/deployment.yaml"].format is ArtifactFormat.YAML
        assert staged[f"{overlay_dir('staging')}/secrets.env.example"].format is ArtifactFormat.TEXT

    def test_base_kustomization_lists_every_manifest(self, staged):
        kustomization = staged.yaml(f"{K8S_BASE_DIR}/kustomization.yaml")
        assert kustomization["namespace"] == "acme"
        assert kustomization["resources"] == list(BASE_FILES)


class TestCrossReferences:
    def test_selectors_match(self, staged):
        deployment = staged.yaml(f"{K8S_BASE_DIR}/deployment.yaml")
        service = staged.yaml(f"{K8S_BASE_DIR}/service.yaml")
        policy = staged.yaml(f"{K8S_BASE_DIR}/networkpolicy.yaml")

        selector = deployment["spec"]["selector"]["matchLabels"]
        assert service["spec"]["selector"] == selector
        assert policy["spec"]["podSelector"]["matchLabels"] == selector
        pod_labels = deployment["spec"]["template"]["metadata"]["labels"]
        assert selector.items() <= pod_labels.items()

    def test_every_object_shares_the_namespace(self, staged):
        for filename in BASE_FILES:
            document = staged.yaml(f"{K8S_BASE_DIR}/{filename}")
            if document["kind"] == "Namespace":
                assert document["metadata"]["name"] == "acme"
            else:
                assert document["metadata"]["namespace"] == "acme"

    def test_hpa_targets_the_deployment(self, staged):
        hpa = staged.yaml(f"{K8S_BASE_DIR}/hpa.yaml")
        assert hpa["spec"]["scaleTargetRef"]["name"] == "acme-api"

    def test_deployment_uses_service_account_and_config_map(self, staged):
        pod = staged.yaml(f"{K8S_BASE_DIR}/deployment.yaml")["spec"]["template"]["spec"]
        assert pod["serviceAccountName"] == staged.yaml(f"{K8S_BASE_DIR}/serviceaccount.yaml")[
            "metadata"
        ]["name"]
        config_map = staged.yaml(f"{K8S_BASE_DIR}/configmap.yaml")["metadata"]["name"]
        assert pod["containers"][0]["envFrom"] == [{"configMapRef": {"name": config_map}}]

    def test_secret_refs_match_the_generated_secret(self, staged):
        container = staged.yaml(f"{K8S_BASE_DIR}/deployment.yaml")["spec"]["template"]["spec"][
            "containers"
        ][0]
        refs = {e["name"]: e["valueFrom"]["secretKeyRef"] for e in container["env"]}
        assert set(refs) == {"DATABASE_URL", "REDIS_URL", "JWT_SECRET", "API_KEY"}

        for env in Environment:
            kustomization = staged.yaml(f"{overlay_dir(env.value)}/kustomization.yaml")
            generator = kustomization["secretGenerator"][0]
            example = staged.text(f"{overlay_dir(env.value)}/secrets.env.example")
            for name, ref in refs.items():
                assert ref["name"] == generator["name"] == "acme-api-secrets"
                assert f"\n{ref['key']}=" in example
                assert ref["key"] == secret_key(name)

    def test_no_secret_values_are_emitted(self, staged):
        example = staged.text(f"{overlay_dir('production')}/secrets.env.example")
        for line in example.splitlines():
            if line and not line.startswith("#"):
                assert line.endswith("=")


class TestOverlays:
    @pytest.mark.parametrize("env", list(Environment))
    def test_staged_patch_applies_cleanly(self, staged, k8s_config, names_for, env):
        directory = overlay_dir(env.value)
        base = staged.yaml(f"{K8S_BASE_DIR}/deployment.yaml")
        patch = staged.yaml(f"{directory}/deployment-patch.yaml")
        kustomization = staged.yaml(f"{directory}/kustomization.yaml")

        assert kustomization["resources"] == ["../../base"]
        assert kustomization["patches"][0]["target"] == {"kind": "Deployment", "name": "acme-api"}

        patched = apply_overlay(base, patch, kustomization["images"][0])
        expected = environment_deployment(k8s_config, names_for(k8s_config), overlay_for(env))
        assert patched == expected
        assert set(changed_fields(base, patched)) <= set(ALLOWED_OVERLAY_FIELDS)


class TestSecrets:
    def test_declared_with_consumers(self, staged):
        deployment = f"{K8S_BASE_DIR}/deployment.yaml"
        assert set(staged.secrets) == {"DATABASE_URL", "REDIS_URL", "JWT_SECRET", "API_KEY"}
        for consumers in staged.secrets.values():
            assert consumers[0] == deployment
            assert len(consumers) == 1 + len(Environment)
