"""Composable builders for Kubernetes manifest fragments.

Each function returns a plain dict (insertion-ordered for readable YAML).
Manifests are assembled from these pieces; every name and label comes from
the :class:`~platformgen.naming.NameRegistry`.
"""

from __future__ import annotations

from typing import Any

from ..config import Configuration
from ..naming import APP_SECRETS, NameRegistry, secret_key

APP_PORT = 3000
SERVICE_PORT = 80
METRICS_PATH = "/metrics"
LIVENESS_PATH = "/health"
READINESS_PATH = "/health/ready"

BASE_REPLICAS = 2
BASE_IMAGE_TAG = "latest"
BASE_REQUESTS: dict[str, str] = {"cpu": "100m", "memory": "256Mi"}
BASE_LIMITS: dict[str, str] = {"cpu": "500m", "memory": "512Mi"}

HPA_MIN_REPLICAS = 3
HPA_MAX_REPLICAS = 10
HPA_CPU_TARGET = 70
HPA_MEMORY_TARGET = 80

RUN_AS_USER = 1001


# ---------------------------------------------------------------------------
# Labels and metadata
# ---------------------------------------------------------------------------


def selector_labels(names: NameRegistry) -> dict[str, str]:
    """Labels used in selectors; must never change once deployed."""
    return {
        "app.kubernetes.io/name": names.resolve("api"),
        "app.kubernetes.io/part-of": names.resolve("project"),
    }


def labels(names: NameRegistry, component: str = "backend") -> dict[str, str]:
    return {
        **selector_labels(names),
        "app.kubernetes.io/component": component,
        "app.kubernetes.io/managed-by": "platformgen",
    }


def metadata(
    name: str,
    namespace: str | None = None,
    object_labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
) -> dict[str, Any]:
    meta: dict[str, Any] = {"name": name}
    if namespace:
        meta["namespace"] = namespace
    if object_labels:
        meta["labels"] = dict(object_labels)
    if annotations:
        meta["annotations"] = dict(annotations)
    return meta


def image_repository(config: Configuration, names: NameRegistry) -> str:
    """Container image repository (no tag) shared by CI and manifests."""
    return f"ghcr.io/{config.github_org.lower()}/{names.resolve('api')}"


# ---------------------------------------------------------------------------
# Container pieces
# ---------------------------------------------------------------------------


def http_probe(
    path: str,
    initial_delay: int,
    period: int,
    timeout: int = 3,
    failure_threshold: int = 3,
) -> dict[str, Any]:
    return {
        "httpGet": {"path": path, "port": "http"},
        "initialDelaySeconds": initial_delay,
        "periodSeconds": period,
        "timeoutSeconds": timeout,
        "failureThreshold": failure_threshold,
    }


def resources(requests: dict[str, str], limits: dict[str, str]) -> dict[str, Any]:
    return {"requests": dict(requests), "limits": dict(limits)}


def secret_env(env_name: str, secret_name: str) -> dict[str, Any]:
    """Environment variable read from a key of a Kubernetes Secret."""
    return {
        "name": env_name,
        "valueFrom": {"secretKeyRef": {"name": secret_name, "key": secret_key(env_name)}},
    }


def container_security_context() -> dict[str, Any]:
    return {
        "allowPrivilegeEscalation": False,
        "readOnlyRootFilesystem": True,
        "runAsNonRoot": True,
        "runAsUser": RUN_AS_USER,
        "capabilities": {"drop": ["ALL"]},
    }


def pod_security_context() -> dict[str, Any]:
    return {
        "runAsNonRoot": True,
        "runAsUser": RUN_AS_USER,
        "fsGroup": RUN_AS_USER,
        "seccompProfile": {"type": "RuntimeDefault"},
    }


def container_spec(
    config: Configuration,
    names: NameRegistry,
    image_tag: str,
    limits: dict[str, str],
) -> dict[str, Any]:
    """The API container: ports, config/secret env, probes, hardening."""
    secret_name = names.resolve("api.secret")
    return {
        "name": names.resolve("api"),
        "image": f"{image_repository(config, names)}:{image_tag}",
        "imagePullPolicy": "IfNotPresent",
        "ports": [{"name": "http", "containerPort": APP_PORT, "protocol": "TCP"}],
        "envFrom": [{"configMapRef": {"name": names.resolve("api.config")}}],
        "env": [secret_env(names.resolve(concept), secret_name) for concept in APP_SECRETS],
        "resources": resources(BASE_REQUESTS, limits),
        "livenessProbe": http_probe(LIVENESS_PATH, initial_delay=30, period=10),
        "readinessProbe": http_probe(READINESS_PATH, initial_delay=5, period=5),
        "securityContext": container_security_context(),
        "volumeMounts": [{"name": "tmp", "mountPath": "/tmp"}],
    }


def pod_anti_affinity(names: NameRegistry) -> dict[str, Any]:
    return {
        "podAntiAffinity": {
            "preferredDuringSchedulingIgnoredDuringExecution": [
                {
                    "weight": 100,
                    "podAffinityTerm": {
                        "labelSelector": {"matchLabels": selector_labels(names)},
                        "topologyKey": "kubernetes.io/hostname",
                    },
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Whole manifests
# ---------------------------------------------------------------------------


def namespace(names: NameRegistry) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": metadata(names.resolve("namespace"), object_labels=labels(names, "namespace")),
    }


def service_account(names: NameRegistry) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": metadata(
            names.resolve("api"), names.resolve("namespace"), labels(names)
        ),
        "automountServiceAccountToken": False,
    }


def config_map(names: NameRegistry) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": metadata(
            names.resolve("api.config"), names.resolve("namespace"), labels(names)
        ),
        "data": {
            "NODE_ENV": "production",
            "PORT": str(APP_PORT),
            "LOG_LEVEL": "info",
            "METRICS_PATH": METRICS_PATH,
        },
    }


def deployment(
    config: Configuration,
    names: NameRegistry,
    replicas: int = BASE_REPLICAS,
    limits: dict[str, str] | None = None,
    image_tag: str = BASE_IMAGE_TAG,
) -> dict[str, Any]:
    """The API Deployment.

    Called with defaults it yields the base manifest; with an overlay's
    values it yields that environment's document.
    """
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata(names.resolve("api"), names.resolve("namespace"), labels(names)),
        "spec": {
            "replicas": replicas,
            "revisionHistoryLimit": 5,
            "selector": {"matchLabels": selector_labels(names)},
            "strategy": {
                "type": "RollingUpdate",
                "rollingUpdate": {"maxSurge": 1, "maxUnavailable": 0},
            },
            "template": {
                "metadata": {
                    "labels": labels(names),
                    "annotations": {
                        "prometheus.io/scrape": "true",
                        "prometheus.io/port": str(APP_PORT),
                        "prometheus.io/path": METRICS_PATH,
                    },
                },
                "spec": {
                    "serviceAccountName": names.resolve("api"),
                    "securityContext": pod_security_context(),
                    "containers": [
                        container_spec(config, names, image_tag, limits or BASE_LIMITS)
                    ],
                    "volumes": [{"name": "tmp", "emptyDir": {}}],
                    "affinity": pod_anti_affinity(names),
                },
            },
        },
    }


def service(names: NameRegistry) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": metadata(names.resolve("api"), names.resolve("namespace"), labels(names)),
        "spec": {
            "type": "ClusterIP",
            "selector": selector_labels(names),
            "ports": [
                {"name": "http", "port": SERVICE_PORT, "targetPort": "http", "protocol": "TCP"}
            ],
        },
    }


def horizontal_pod_autoscaler(names: NameRegistry) -> dict[str, Any]:
    def utilization(resource: str, target: int) -> dict[str, Any]:
        return {
            "type": "Resource",
            "resource": {
                "name": resource,
                "target": {"type": "Utilization", "averageUtilization": target},
            },
        }

    return {
        "apiVersion": "autoscaling/v2",
        "kind": "HorizontalPodAutoscaler",
        "metadata": metadata(names.resolve("api"), names.resolve("namespace"), labels(names)),
        "spec": {
            "scaleTargetRef": {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "name": names.resolve("api"),
            },
            "minReplicas": HPA_MIN_REPLICAS,
            "maxReplicas": HPA_MAX_REPLICAS,
            "metrics": [
                utilization("cpu", HPA_CPU_TARGET),
                utilization("memory", HPA_MEMORY_TARGET),
            ],
        },
    }


def network_policy(names: NameRegistry) -> dict[str, Any]:
    """Ingress only from the ingress controller; egress to DNS, data stores, HTTPS."""

    def port(number: int, protocol: str = "TCP") -> dict[str, Any]:
        return {"protocol": protocol, "port": number}

    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": metadata(names.resolve("api"), names.resolve("namespace"), labels(names)),
        "spec": {
            "podSelector": {"matchLabels": selector_labels(names)},
            "policyTypes": ["Ingress", "Egress"],
            "ingress": [
                {
                    "from": [
                        {
                            "namespaceSelector": {
                                "matchLabels": {"kubernetes.io/metadata.name": "ingress-nginx"}
                            }
                        },
                        {"podSelector": {"matchLabels": selector_labels(names)}},
                    ],
                    "ports": [port(APP_PORT)],
                }
            ],
            "egress": [
                {
                    "to": [
                        {
                            "namespaceSelector": {
                                "matchLabels": {"kubernetes.io/metadata.name": "kube-system"}
                            }
                        }
                    ],
                    "ports": [port(53, "UDP"), port(53, "TCP")],
                },
                {"ports": [port(5432), port(6379), port(443)]},
            ],
        },
    }
