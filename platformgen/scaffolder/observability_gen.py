"""Prometheus, alerting, Grafana, OpenTelemetry and Fluent Bit configuration."""

from __future__ import annotations

from typing import Any

from ..artifacts import ArtifactFormat, ArtifactRef
from . import fragments
from .base import ArtifactGenerator

OBSERVABILITY_DIR = "infrastructure/observability"

_SA_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"


class ObservabilityGenerator(ArtifactGenerator):
    """Stages the monitoring stack and a local compose override for it."""

    family = "infrastructure"

    def build(self) -> None:
        prometheus_path = f"{OBSERVABILITY_DIR}/prometheus.yaml"
        alerts_path = f"{OBSERVABILITY_DIR}/alerts.yaml"
        override_path = "docker-compose.override.yml"
        grafana_password = self.names.resolve("secret.grafana_admin_password")

        self.stage(
            prometheus_path,
            ArtifactFormat.YAML,
            self.prometheus(),
            depends_on=[ArtifactRef(path=alerts_path)],
        )
        self.stage(alerts_path, ArtifactFormat.YAML, self.alert_rules())
        self.stage(f"{OBSERVABILITY_DIR}/grafana-dashboard.json", ArtifactFormat.JSON,
                   self.dashboard())
        self.stage(f"{OBSERVABILITY_DIR}/otel-collector.yaml", ArtifactFormat.YAML,
                   self.otel_collector())
        self.stage(
            f"{OBSERVABILITY_DIR}/fluent-bit.conf",
            ArtifactFormat.TEXT,
            self.template("observability/fluent-bit.conf.j2"),
        )
        self.stage(
            override_path,
            ArtifactFormat.YAML,
            self.compose_override(grafana_password),
            depends_on=[ArtifactRef(path=prometheus_path), ArtifactRef(path=alerts_path)],
            secrets=[grafana_password],
        )
        self.declare_secret(grafana_password, [override_path])

    # -- Prometheus --------------------------------------------------------

    def prometheus(self) -> dict[str, Any]:
        scrape_configs: list[dict[str, Any]] = [
            {"job_name": "prometheus", "static_configs": [{"targets": ["localhost:9090"]}]},
        ]
        if self.config.kubernetes:
            scrape_configs += self._kubernetes_jobs()
        else:
            scrape_configs.append(
                {
                    "job_name": self.names.resolve("api"),
                    "metrics_path": fragments.METRICS_PATH,
                    "static_configs": [
                        {"targets": [f"{self.names.resolve('api')}:{fragments.APP_PORT}"]}
                    ],
                }
            )
        return {
            "global": {"scrape_interval": "30s", "evaluation_interval": "30s"},
            "alerting": {
                "alertmanagers": [{"static_configs": [{"targets": ["alertmanager:9093"]}]}]
            },
            "rule_files": ["alerts.yaml"],
            "scrape_configs": scrape_configs,
        }

    def _kubernetes_jobs(self) -> list[dict[str, Any]]:
        tls = {"ca_file": f"{_SA_DIR}/ca.crt"}
        token = f"{_SA_DIR}/token"
        return [
            {
                "job_name": "kubernetes-apiservers",
                "kubernetes_sd_configs": [{"role": "endpoints"}],
                "scheme": "https",
                "tls_config": tls,
                "bearer_token_file": token,
                "relabel_configs": [
                    {
                        "source_labels": [
                            "__meta_kubernetes_namespace",
                            "__meta_kubernetes_service_name",
                            "__meta_kubernetes_endpoint_port_name",
                        ],
                        "action": "keep",
                        "regex": "default;kubernetes;https",
                    }
                ],
            },
            {
                "job_name": "kubernetes-nodes",
                "kubernetes_sd_configs": [{"role": "node"}],
                "scheme": "https",
                "tls_config": dict(tls),
                "bearer_token_file": token,
                "relabel_configs": [
                    {"action": "labelmap", "regex": "__meta_kubernetes_node_label_(.+)"}
                ],
            },
            {
                "job_name": "kubernetes-pods",
                "kubernetes_sd_configs": [
                    {"role": "pod", "namespaces": {"names": [self.names.resolve("namespace")]}}
                ],
                "relabel_configs": [
                    {
                        "source_labels": ["__meta_kubernetes_pod_annotation_prometheus_io_scrape"],
                        "action": "keep",
                        "regex": "true",
                    },
                    {
                        "source_labels": ["__meta_kubernetes_pod_annotation_prometheus_io_path"],
                        "action": "replace",
                        "target_label": "__metrics_path__",
                        "regex": "(.+)",
                    },
                    {
                        "source_labels": [
                            "__address__",
                            "__meta_kubernetes_pod_annotation_prometheus_io_port",
                        ],
                        "action": "replace",
                        "regex": r"([^:]+)(?::\d+)?;(\d+)",
                        "replacement": "$1:$2",
                        "target_label": "__address__",
                    },
                    {"action": "labelmap", "regex": "__meta_kubernetes_pod_label_(.+)"},
                    {
                        "source_labels": ["__meta_kubernetes_namespace"],
                        "action": "replace",
                        "target_label": "kubernetes_namespace",
                    },
                    {
                        "source_labels": ["__meta_kubernetes_pod_name"],
                        "action": "replace",
                        "target_label": "kubernetes_pod_name",
                    },
                ],
            },
        ]

    def alert_rules(self) -> dict[str, Any]:
        pods = f'pod=~"{self.names.resolve("api")}-.*"'

        def rule(name: str, expr: str, for_: str, severity: str, summary: str,
                 description: str) -> dict[str, Any]:
            return {
                "alert": name,
                "expr": expr,
                "for": for_,
                "labels": {"severity": severity},
                "annotations": {"summary": summary, "description": description},
            }

        return {
            "groups": [
                {
                    "name": self.names.resolve("alerts"),
                    "interval": "30s",
                    "rules": [
                        rule(
                            "HighRequestLatency",
                            "histogram_quantile(0.95, sum(rate("
                            "http_request_duration_seconds_bucket[5m])) by (le)) > 1",
                            "10m",
                            "warning",
                            "High request latency on {{ $labels.instance }}",
                            "95th percentile latency is above 1s (current value: {{ $value }}s)",
                        ),
                        rule(
                            "HighErrorRate",
                            'sum(rate(http_requests_total{status=~"5.."}[5m])) '
                            "/ sum(rate(http_requests_total[5m])) > 0.05",
                            "5m",
                            "critical",
                            "High error rate",
                            "Error rate is above 5% "
                            "(current value: {{ $value | humanizePercentage }})",
                        ),
                        rule(
                            "PodCPUUsage",
                            f"sum(rate(container_cpu_usage_seconds_total{{{pods}}}[5m])) "
                            "by (pod) > 0.8",
                            "5m",
                            "warning",
                            "High CPU usage for pod {{ $labels.pod }}",
                            "Pod CPU usage is above 80% "
                            "(current value: {{ $value | humanizePercentage }})",
                        ),
                        rule(
                            "PodMemoryUsage",
                            f"sum(container_memory_working_set_bytes{{{pods}}}) by (pod) "
                            f"/ sum(container_spec_memory_limit_bytes{{{pods}}}) by (pod) > 0.8",
                            "5m",
                            "warning",
                            "High memory usage for pod {{ $labels.pod }}",
                            "Pod memory usage is above 80% "
                            "(current value: {{ $value | humanizePercentage }})",
                        ),
                        rule(
                            "PodRestartingTooOften",
                            f"rate(kube_pod_container_status_restarts_total{{{pods}}}[15m]) > 0",
                            "5m",
                            "critical",
                            "Pod {{ $labels.pod }} is restarting too often",
                            "Pod has restarted {{ $value }} times in the last 15 minutes",
                        ),
                    ],
                }
            ]
        }

    # -- Grafana / OpenTelemetry -------------------------------------------

    def dashboard(self) -> dict[str, Any]:
        pods = f'pod=~"{self.names.resolve("api")}-.*"'
        queries = (
            ("Request Rate", "sum(rate(http_requests_total[5m])) by (status)"),
            (
                "Response Time (p95)",
                "histogram_quantile(0.95, sum(rate(http_request_duration_seconds_bucket[5m])) by (le))",
            ),
            ("CPU Usage", f"sum(rate(container_cpu_usage_seconds_total{{{pods}}}[5m])) by (pod)"),
            ("Memory Usage", f"sum(container_memory_working_set_bytes{{{pods}}}) by (pod)"),
        )
        panels = []
        for index, (title, expr) in enumerate(queries):
            panels.append(
                {
                    "id": index + 1,
                    "title": title,
                    "type": "timeseries",
                    "gridPos": {"h": 8, "w": 12, "x": 12 * (index % 2), "y": 8 * (index // 2)},
                    "targets": [{"expr": expr, "refId": "A"}],
                }
            )
        return {
            "dashboard": {
                "id": None,
                "uid": self.names.resolve("dashboard"),
                "title": f"{self.names.resolve('project')} overview",
                "tags": [self.names.resolve("project"), "platformgen"],
                "timezone": "browser",
                "panels": panels,
                "schemaVersion": 39,
                "version": 0,
            },
            "overwrite": True,
        }

    def otel_collector(self) -> dict[str, Any]:
        return {
            "receivers": {
                "otlp": {
                    "protocols": {
                        "grpc": {"endpoint": "0.0.0.0:4317"},
                        "http": {"endpoint": "0.0.0.0:4318"},
                    }
                }
            },
            "processors": {
                "memory_limiter": {
                    "check_interval": "5s",
                    "limit_mib": 512,
                    "spike_limit_mib": 128,
                },
                "batch": {"timeout": "1s", "send_batch_size": 1024},
                "resource": {
                    "attributes": [
                        {
                            "key": "service.name",
                            "value": self.names.resolve("api"),
                            "action": "upsert",
                        }
                    ]
                },
            },
            "exporters": {
                "otlp/jaeger": {"endpoint": "jaeger:4317", "tls": {"insecure": True}},
                "prometheus": {"endpoint": "0.0.0.0:8889"},
            },
            "service": {
                "pipelines": {
                    "traces": {
                        "receivers": ["otlp"],
                        "processors": ["memory_limiter", "resource", "batch"],
                        "exporters": ["otlp/jaeger"],
                    },
                    "metrics": {
                        "receivers": ["otlp"],
                        "processors": ["memory_limiter", "batch"],
                        "exporters": ["prometheus"],
                    },
                }
            },
        }

    # -- Local stack -------------------------------------------------------

    def compose_override(self, grafana_password: str) -> dict[str, Any]:
        config_dir = f"./{OBSERVABILITY_DIR}"
        return {
            "services": {
                "prometheus": {
                    "image": "prom/prometheus:v2.53.0",
                    "ports": ["9090:9090"],
                    "volumes": [
                        f"{config_dir}/prometheus.yaml:/etc/prometheus/prometheus.yml:ro",
                        f"{config_dir}/alerts.yaml:/etc/prometheus/alerts.yaml:ro",
                        "prometheus_data:/prometheus",
                    ],
                    "command": [
                        "--config.file=/etc/prometheus/prometheus.yml",
                        "--storage.tsdb.path=/prometheus",
                    ],
                    "networks": ["monitoring"],
                },
                "grafana": {
                    "image": "grafana/grafana:11.1.0",
                    "ports": ["3001:3000"],
                    "environment": {
                        "GF_SECURITY_ADMIN_PASSWORD": f"${{{grafana_password}:?set {grafana_password}}}",
                        "GF_USERS_ALLOW_SIGN_UP": "false",
                    },
                    "volumes": ["grafana_data:/var/lib/grafana"],
                    "networks": ["monitoring"],
                },
                "otel-collector": {
                    "image": "otel/opentelemetry-collector-contrib:0.104.0",
                    "command": ["--config=/etc/otelcol/config.yaml"],
                    "volumes": [f"{config_dir}/otel-collector.yaml:/etc/otelcol/config.yaml:ro"],
                    "ports": ["4317:4317", "4318:4318"],
                    "networks": ["monitoring"],
                },
                "jaeger": {
                    "image": "jaegertracing/all-in-one:1.58",
                    "ports": ["16686:16686"],
                    "environment": {"COLLECTOR_OTLP_ENABLED": "true"},
                    "networks": ["monitoring"],
                },
            },
            "networks": {"monitoring": {"driver": "bridge"}},
            "volumes": {"prometheus_data": {}, "grafana_data": {}},
        }
