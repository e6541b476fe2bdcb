"""Istio gateway, routing and mTLS policies for the API."""

from __future__ import annotations

from typing import Any

from ..artifacts import ArtifactFormat, ArtifactRef
from . import fragments
from .base import ArtifactGenerator
from .kubernetes_gen import K8S_BASE_DIR

SERVICE_MESH_DIR = "infrastructure/service-mesh"

_NETWORKING_API = "networking.istio.io/v1beta1"
_SECURITY_API = "security.istio.io/v1beta1"


class ServiceMeshGenerator(ArtifactGenerator):
    family = "infrastructure"

    def build(self) -> None:
        names = self.names
        api = names.resolve("api")
        gateway_path = f"{SERVICE_MESH_DIR}/gateway.yaml"
        service_ref = ArtifactRef(
            path=f"{K8S_BASE_DIR}/service.yaml", pointer="/metadata/name", expected=api
        )

        self.stage(gateway_path, ArtifactFormat.YAML, self.gateway())
        self.stage(
            f"{SERVICE_MESH_DIR}/virtual-service.yaml",
            ArtifactFormat.YAML,
            self.virtual_service(),
            depends_on=[
                ArtifactRef(
                    path=gateway_path,
                    pointer="/metadata/name",
                    expected=names.resolve("mesh.gateway"),
                ),
                service_ref,
            ],
        )
        self.stage(
            f"{SERVICE_MESH_DIR}/destination-rule.yaml",
            ArtifactFormat.YAML,
            self.destination_rule(),
            depends_on=[service_ref],
        )
        self.stage(
            f"{SERVICE_MESH_DIR}/peer-authentication.yaml",
            ArtifactFormat.YAML,
            self.peer_authentication(),
            depends_on=[
                ArtifactRef(
                    path=f"{K8S_BASE_DIR}/namespace.yaml",
                    pointer="/metadata/name",
                    expected=names.resolve("namespace"),
                )
            ],
        )
        self.stage(
            f"{SERVICE_MESH_DIR}/authorization-policy.yaml",
            ArtifactFormat.YAML,
            self.authorization_policy(),
            depends_on=[
                ArtifactRef(
                    path=f"{K8S_BASE_DIR}/deployment.yaml",
                    pointer="/spec/selector/matchLabels",
                    expected=fragments.selector_labels(names),
                ),
                ArtifactRef(
                    path=f"{K8S_BASE_DIR}/serviceaccount.yaml",
                    pointer="/metadata/name",
                    expected=api,
                ),
            ],
        )

    @property
    def host(self) -> str:
        return self.names.resolve("mesh.host")

    def _metadata(self, name: str) -> dict[str, Any]:
        return fragments.metadata(
            name, self.names.resolve("namespace"), fragments.labels(self.names, "mesh")
        )

    def gateway(self) -> dict[str, Any]:
        return {
            "apiVersion": _NETWORKING_API,
            "kind": "Gateway",
            "metadata": self._metadata(self.names.resolve("mesh.gateway")),
            "spec": {
                "selector": {"istio": "ingressgateway"},
                "servers": [
                    {
                        "port": {"number": 443, "name": "https", "protocol": "HTTPS"},
                        "tls": {"mode": "SIMPLE", "credentialName": self.names.resolve("tls.secret")},
                        "hosts": [self.host],
                    },
                    {
                        "port": {"number": 80, "name": "http", "protocol": "HTTP"},
                        "tls": {"httpsRedirect": True},
                        "hosts": [self.host],
                    },
                ],
            },
        }

    def virtual_service(self) -> dict[str, Any]:
        api = self.names.resolve("api")
        return {
            "apiVersion": _NETWORKING_API,
            "kind": "VirtualService",
            "metadata": self._metadata(api),
            "spec": {
                "hosts": [self.host],
                "gateways": [self.names.resolve("mesh.gateway")],
                "http": [
                    {
                        "match": [{"uri": {"prefix": "/"}}],
                        "route": [
                            {
                                "destination": {
                                    "host": api,
                                    "port": {"number": fragments.SERVICE_PORT},
                                },
                                "weight": 100,
                            }
                        ],
                        "timeout": "30s",
                        "retries": {
                            "attempts": 3,
                            "perTryTimeout": "10s",
                            "retryOn": "gateway-error,connect-failure,refused-stream",
                        },
                    }
                ],
            },
        }

    def destination_rule(self) -> dict[str, Any]:
        api = self.names.resolve("api")
        return {
            "apiVersion": _NETWORKING_API,
            "kind": "DestinationRule",
            "metadata": self._metadata(api),
            "spec": {
                "host": api,
                "trafficPolicy": {
                    "tls": {"mode": "ISTIO_MUTUAL"},
                    "connectionPool": {
                        "tcp": {"maxConnections": 100},
                        "http": {
                            "http1MaxPendingRequests": 100,
                            "http2MaxRequests": 100,
                            "maxRequestsPerConnection": 2,
                        },
                    },
                    "loadBalancer": {"simple": "ROUND_ROBIN"},
                    "outlierDetection": {
                        "consecutive5xxErrors": 5,
                        "interval": "30s",
                        "baseEjectionTime": "30s",
                        "maxEjectionPercent": 50,
                    },
                },
            },
        }

    def peer_authentication(self) -> dict[str, Any]:
        return {
            "apiVersion": _SECURITY_API,
            "kind": "PeerAuthentication",
            "metadata": self._metadata("default"),
            "spec": {"mtls": {"mode": "STRICT"}},
        }

    def authorization_policy(self) -> dict[str, Any]:
        namespace = self.names.resolve("namespace")
        return {
            "apiVersion": _SECURITY_API,
            "kind": "AuthorizationPolicy",
            "metadata": self._metadata(self.names.resolve("api")),
            "spec": {
                "selector": {"matchLabels": fragments.selector_labels(self.names)},
                "action": "ALLOW",
                "rules": [
                    {
                        "from": [
                            {"source": {"principals": [f"cluster.local/ns/{namespace}/sa/*"]}},
                            {"source": {"namespaces": ["istio-system"]}},
                        ],
                        "to": [
                            {
                                "operation": {
                                    "methods": ["GET", "POST", "PUT", "PATCH", "DELETE"]
                                }
                            }
                        ],
                    }
                ],
            },
        }
