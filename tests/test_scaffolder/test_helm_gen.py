"""Tests for the Helm chart (platformgen.scaffolder.helm_gen)."""

from __future__ import annotations

import pytest

from platformgen.config import Environment
from platformgen.scaffolder import fragments
from platformgen.scaffolder.helm_gen import HelmGenerator, chart_dir
from platformgen.scaffolder.kubernetes_gen import K8S_BASE_DIR, KubernetesGenerator
from platformgen.scaffolder.overlays import ALLOWED_HELM_VALUE_FIELDS, overlay_for

pytestmark = pytest.mark.unit

ROOT = chart_dir("acme")


@pytest.fixture
def staged(stage, k8s_config):
    return stage(HelmGenerator, k8s_config)


class TestChart:
    def test_layout(self, staged):
        expected = {
            f"{ROOT}/Chart.yaml",
            f"{ROOT}/values.yaml",
            f"{ROOT}/.helmignore",
            f"{ROOT}/templates/_helpers.tpl",
            f"{ROOT}/templates/deployment.yaml",
            f"{ROOT}/templates/service.yaml",
            f"{ROOT}/templates/hpa.yaml",
            f"{ROOT}/templates/serviceaccount.yaml",
        } | {f"{ROOT}/values-{env.value}.yaml" for env in Environment}
        assert set(staged) == expected

    def test_chart_metadata(self, staged):
        chart = staged.yaml(f"{ROOT}/Chart.yaml")
        assert chart["apiVersion"] == "v2"
        assert chart["name"] == "acme"
        assert [d["name"] for d in chart["dependencies"]] == ["postgresql", "redis"]


class TestValues:
    def test_names_match_the_kubernetes_base(self, stage, staged, k8s_config):
        values = staged.yaml(f"{ROOT}/values.yaml")
        base = stage(KubernetesGenerator, k8s_config)
        deployment = base.yaml(f"{K8S_BASE_DIR}/deployment.yaml")
        container = deployment["spec"]["template"]["spec"]["containers"][0]

        assert values["fullnameOverride"] == deployment["metadata"]["name"]
        assert values["serviceAccount"]["name"] == deployment["spec"]["template"]["spec"][
            "serviceAccountName"
        ]
        assert values["config"]["existingConfigMap"] == base.yaml(
            f"{K8S_BASE_DIR}/configmap.yaml"
        )["metadata"]["name"]
        assert f"{values['image']['repository']}:{values['image']['tag']}" == container["image"]

        secret_refs = [
            {"name": e["name"], "key": e["valueFrom"]["secretKeyRef"]["key"]}
            for e in container["env"]
        ]
        assert values["secrets"]["env"] == secret_refs
        assert values["secrets"]["existingSecret"] == "acme-api-secrets"

    def test_values_carry_only_secret_names(self, staged):
        values = staged.yaml(f"{ROOT}/values.yaml")
        for entry in values["secrets"]["env"]:
            assert set(entry) == {"name", "key"}

    def test_environment_values_only_override_scale_fields(self, staged):
        for env in Environment:
            values = staged.yaml(f"{ROOT}/values-{env.value}.yaml")
            overlay = overlay_for(env)
            assert values["replicaCount"] == overlay.replica_count
            assert values["image"] == {"tag": overlay.image_tag}
            assert values["resources"]["limits"] == overlay.resource_limits.as_dict()
            assert set(values) == {p.split("/", 1)[0] for p in ALLOWED_HELM_VALUE_FIELDS}

    def test_service_ports(self, staged):
        values = staged.yaml(f"{ROOT}/values.yaml")
        assert values["service"]["targetPort"] == fragments.APP_PORT
        assert values["service"]["port"] == fragments.SERVICE_PORT


class TestTemplates:
    def test_helpers_define_chart_scoped_names(self, staged):
        helpers = staged.text(f"{ROOT}/templates/_helpers.tpl")
        for name in ("name", "fullname", "chart", "selectorLabels", "labels", "serviceAccountName"):
            assert f'define "acme.{name}"' in helpers
        assert "app.kubernetes.io/part-of: acme" in helpers

    def test_templates_are_go_templates(self, staged):
        deployment = staged.text(f"{ROOT}/templates/deployment.yaml")
        assert 'include "acme.fullname" .' in deployment
        assert "{{ $.Values.secrets.existingSecret }}" in deployment
        assert "[[" not in deployment and "[%" not in deployment

    def test_templates_depend_on_helpers(self, staged):
        for filename in ("deployment.yaml", "service.yaml", "hpa.yaml", "serviceaccount.yaml"):
            refs = staged[f"{ROOT}/templates/{filename}"].depends_on
            assert refs[0].path == f"{ROOT}/templates/_helpers.tpl"
            assert refs[0].contains == 'define "acme.fullname"'
