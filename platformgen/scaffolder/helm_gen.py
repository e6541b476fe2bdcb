"""Helm chart for the API service."""

from __future__ import annotations

from typing import Any

from ..artifacts import ArtifactFormat, ArtifactRef
from ..naming import APP_SECRETS, secret_key
from . import fragments
from .base import ArtifactGenerator
from .kubernetes_gen import K8S_BASE_DIR
from .overlays import helm_values_patch, overlays_for

HELM_CHARTS_DIR = "helm/charts"

_CHART_DEPENDENCIES: list[dict[str, str]] = [
    {
        "name": "postgresql",
        "version": "15.x.x",
        "repository": "https://charts.bitnami.com/bitnami",
        "condition": "postgresql.enabled",
    },
    {
        "name": "redis",
        "version": "19.x.x",
        "repository": "https://charts.bitnami.com/bitnami",
        "condition": "redis.enabled",
    },
]

# Go-template files rendered through the ``[[ ]]`` Jinja2 environment.
_CHART_TEMPLATES: tuple[str, ...] = (
    "_helpers.tpl",
    "deployment.yaml",
    "service.yaml",
    "hpa.yaml",
    "serviceaccount.yaml",
)


def chart_dir(chart: str) -> str:
    return f"{HELM_CHARTS_DIR}/{chart}"


class HelmGenerator(ArtifactGenerator):
    """Stages ``helm/charts/<chart>/`` with base values and per-env value overlays."""

    family = "infrastructure"

    def build(self) -> None:
        chart = self.names.resolve("helm.chart")
        root = chart_dir(chart)
        values_path = f"{root}/values.yaml"
        secret_names = self.secret_names(APP_SECRETS)

        self.stage(f"{root}/Chart.yaml", ArtifactFormat.YAML, self._chart(chart))
        self.stage(
            values_path,
            ArtifactFormat.YAML,
            self.values(),
            depends_on=[
                ArtifactRef(
                    path=f"{K8S_BASE_DIR}/configmap.yaml",
                    pointer="/metadata/name",
                    expected=self.names.resolve("api.config"),
                )
            ],
            secrets=secret_names,
        )
        for name in secret_names:
            self.declare_secret(name, [values_path])

        for overlay in overlays_for(self.config):
            self.stage(
                f"{root}/values-{overlay.env_name.value}.yaml",
                ArtifactFormat.YAML,
                helm_values_patch(overlay),
                depends_on=[ArtifactRef(path=values_path)],
            )

        self.stage(f"{root}/.helmignore", ArtifactFormat.TEXT, self.template("helm/helmignore.j2"))

        context = {**self.context(), "chart": chart}
        helpers_ref = ArtifactRef(
            path=f"{root}/templates/_helpers.tpl", contains=f'define "{chart}.fullname"'
        )
        for filename in _CHART_TEMPLATES:
            self.stage(
                f"{root}/templates/{filename}",
                ArtifactFormat.TEXT,
                self.renderer.render_go_template(f"helm/{filename}.j2", context),
                depends_on=[] if filename == "_helpers.tpl" else [helpers_ref],
            )

    def _chart(self, chart: str) -> dict[str, Any]:
        return {
            "apiVersion": "v2",
            "name": chart,
            "description": f"Helm chart for {self.config.description}",
            "type": "application",
            "version": "0.1.0",
            "appVersion": "1.0.0",
            "keywords": [self.names.resolve("project"), "api"],
            "dependencies": [dict(dep) for dep in _CHART_DEPENDENCIES],
        }

    def values(self) -> dict[str, Any]:
        """Base ``values.yaml``; environment files only override a few keys."""
        names = self.names
        api = names.resolve("api")
        return {
            "nameOverride": api,
            "fullnameOverride": api,
            "replicaCount": fragments.BASE_REPLICAS,
            "image": {
                "repository": fragments.image_repository(self.config, names),
                "tag": fragments.BASE_IMAGE_TAG,
                "pullPolicy": "IfNotPresent",
            },
            "serviceAccount": {"create": True, "name": api},
            "podAnnotations": {
                "prometheus.io/scrape": "true",
                "prometheus.io/port": str(fragments.APP_PORT),
                "prometheus.io/path": fragments.METRICS_PATH,
            },
            "service": {
                "type": "ClusterIP",
                "port": fragments.SERVICE_PORT,
                "targetPort": fragments.APP_PORT,
            },
            "resources": fragments.resources(fragments.BASE_REQUESTS, fragments.BASE_LIMITS),
            "autoscaling": {
                "enabled": True,
                "minReplicas": fragments.HPA_MIN_REPLICAS,
                "maxReplicas": fragments.HPA_MAX_REPLICAS,
                "targetCPUUtilizationPercentage": fragments.HPA_CPU_TARGET,
                "targetMemoryUtilizationPercentage": fragments.HPA_MEMORY_TARGET,
            },
            "probes": {
                "liveness": {"path": fragments.LIVENESS_PATH},
                "readiness": {"path": fragments.READINESS_PATH},
            },
            "config": {"existingConfigMap": names.resolve("api.config")},
            "secrets": {
                "existingSecret": names.resolve("api.secret"),
                "env": [
                    {"name": name, "key": secret_key(name)}
                    for name in self.secret_names(APP_SECRETS)
                ],
            },
            "postgresql": {
                "enabled": False,
                "auth": {"database": names.resolve("database.name")},
            },
            "redis": {"enabled": False},
        }
