"""Kubernetes base manifests and per-environment kustomize overlays."""

from __future__ import annotations

from ..artifacts import ArtifactFormat, ArtifactRef
from ..naming import APP_SECRETS
from . import fragments
from .base import ArtifactGenerator
from .overlays import deployment_patch, image_override, overlays_for

K8S_BASE_DIR = "k8s/base"
K8S_OVERLAYS_DIR = "k8s/overlays"

_KUSTOMIZE_API = "kustomize.config.k8s.io/v1beta1"


def overlay_dir(env: str) -> str:
    return f"{K8S_OVERLAYS_DIR}/{env}"


class KubernetesGenerator(ArtifactGenerator):
    """Stages ``k8s/base`` once and a minimal patch per environment."""

    family = "infrastructure"

    def build(self) -> None:
        names = self.names
        api = names.resolve("api")
        deployment_path = f"{K8S_BASE_DIR}/deployment.yaml"
        secret_names = self.secret_names(APP_SECRETS)

        selector_ref = ArtifactRef(
            path=deployment_path,
            pointer="/spec/selector/matchLabels",
            expected=fragments.selector_labels(names),
        )
        deployment_name_ref = ArtifactRef(path=deployment_path, pointer="/metadata/name", expected=api)

        base_files: list[str] = []

        def stage_base(filename: str, body: dict, **kwargs) -> None:
            base_files.append(filename)
            self.stage(f"{K8S_BASE_DIR}/{filename}", ArtifactFormat.YAML, body, **kwargs)

        stage_base("namespace.yaml", fragments.namespace(names))
        stage_base("serviceaccount.yaml", fragments.service_account(names))
        stage_base("configmap.yaml", fragments.config_map(names))
        stage_base(
            "deployment.yaml",
            fragments.deployment(self.config, names),
            depends_on=[
                ArtifactRef(
                    path=f"{K8S_BASE_DIR}/serviceaccount.yaml", pointer="/metadata/name", expected=api
                ),
                ArtifactRef(
                    path=f"{K8S_BASE_DIR}/configmap.yaml",
                    pointer="/metadata/name",
                    expected=names.resolve("api.config"),
                ),
            ],
            secrets=secret_names,
        )
        stage_base("service.yaml", fragments.service(names), depends_on=[selector_ref])
        stage_base(
            "hpa.yaml", fragments.horizontal_pod_autoscaler(names), depends_on=[deployment_name_ref]
        )
        stage_base("networkpolicy.yaml", fragments.network_policy(names), depends_on=[selector_ref])

        base_kustomization = f"{K8S_BASE_DIR}/kustomization.yaml"
        self.stage(
            base_kustomization,
            ArtifactFormat.YAML,
            {
                "apiVersion": _KUSTOMIZE_API,
                "kind": "Kustomization",
                "namespace": names.resolve("namespace"),
                "resources": list(base_files),
            },
            depends_on=[ArtifactRef(path=f"{K8S_BASE_DIR}/{f}") for f in base_files],
        )

        for overlay in overlays_for(self.config):
            env = overlay.env_name.value
            directory = overlay_dir(env)
            patch_path = f"{directory}/deployment-patch.yaml"
            secrets_example = f"{directory}/secrets.env.example"

            self.stage(
                patch_path,
                ArtifactFormat.YAML,
                deployment_patch(names, overlay),
                depends_on=[
                    deployment_name_ref,
                    ArtifactRef(
                        path=deployment_path,
                        pointer="/spec/template/spec/containers/0/name",
                        expected=api,
                    ),
                ],
            )
            self.stage(
                secrets_example,
                ArtifactFormat.TEXT,
                self.template(
                    "k8s/secrets.env.example.j2", environment=env, secret_names=secret_names
                ),
                secrets=secret_names,
            )
            self.stage(
                f"{directory}/kustomization.yaml",
                ArtifactFormat.YAML,
                {
                    "apiVersion": _KUSTOMIZE_API,
                    "kind": "Kustomization",
                    "resources": ["../../base"],
                    "patches": [
                        {
                            "path": "deployment-patch.yaml",
                            "target": {"kind": "Deployment", "name": api},
                        }
                    ],
                    "images": [image_override(self.config, names, overlay)],
                    "secretGenerator": [
                        {
                            "name": names.resolve("api.secret"),
                            "envs": ["secrets.env"],
                            "options": {"disableNameSuffixHash": True},
                        }
                    ],
                },
                depends_on=[
                    ArtifactRef(path=base_kustomization),
                    ArtifactRef(path=patch_path),
                    ArtifactRef(path=secrets_example),
                ],
            )

            for name in secret_names:
                self.declare_secret(name, [deployment_path, secrets_example])
