"""OpenTelemetry collector fanning OTLP out to Jaeger, Seq and Prometheus."""
from __future__ import annotations

from typing import Any

from .launcher import BackendSpec, LogLine, ServiceInstance, ServiceLauncher, Teardown
from .settings import Settings

OTLP_GRPC_PORT = 4317
OTLP_HTTP_PORT = 4318
HEALTH_PORT = 13133
SCRAPE_PORT = 8889

HEALTH_PATH = "/health/status"

# Substituted for a disabled backend; that export path then goes nowhere.
PLACEHOLDER_JAEGER = "jaeger"
PLACEHOLDER_SEQ = "seq"

CONFIG_TEMPLATE = """
receivers:
  otlp:
    protocols:
      grpc:
        endpoint: 0.0.0.0:{grpc_port}
      http:
        endpoint: 0.0.0.0:{http_port}

exporters:
  otlp:
    endpoint: {jaeger_name}:4317
    tls:
      insecure: true

  otlphttp/logs:
    endpoint: http://{seq_name}/ingest/otlp

  prometheus:
    endpoint: "0.0.0.0:{scrape_port}"
    send_timestamps: true
    metric_expiration: 180m
    resource_to_telemetry_conversion:
      enabled: true

extensions:
  health_check:
    endpoint: "0.0.0.0:{health_port}"
    path: "{health_path}"
    check_collector_pipeline:
      enabled: true
      interval: "10s"
      exporter_failure_threshold: 5

service:
  extensions: [health_check]
  pipelines:
    traces:
      receivers: [otlp]
      exporters: [otlp]

    logs:
      receivers: [otlp]
      exporters: [otlphttp/logs]

    metrics:
      receivers: [otlp]
      exporters: [prometheus]
"""


def render_config(jaeger_name: str, seq_name: str) -> str:
    return CONFIG_TEMPLATE.format(
        grpc_port=OTLP_GRPC_PORT,
        http_port=OTLP_HTTP_PORT,
        jaeger_name=jaeger_name,
        seq_name=seq_name,
        scrape_port=SCRAPE_PORT,
        health_port=HEALTH_PORT,
        health_path=HEALTH_PATH,
    )


SPEC = BackendSpec(
    key="collector",
    ports=(OTLP_GRPC_PORT, OTLP_HTTP_PORT, HEALTH_PORT, SCRAPE_PORT),
    ready=LogLine("Everything is ready. Begin running and processing data"),
    config_path="/etc/otelcol/config.yaml",
    render_config=render_config,
)


def start(
    network: Any = None,
    jaeger_name: str = PLACEHOLDER_JAEGER,
    seq_name: str = PLACEHOLDER_SEQ,
    settings: Settings | None = None,
    client: Any = None,
) -> tuple[ServiceInstance, Teardown]:
    """Start the collector.

    `jaeger_name` and `seq_name` must be container names reachable on
    `network`; they are baked into the exporter config.
    """
    return ServiceLauncher(SPEC, settings=settings, client=client).start(
        network, jaeger_name=jaeger_name, seq_name=seq_name
    )


def otlp_endpoint(instance: ServiceInstance, protocol: str = "grpc") -> str:
    if protocol == "grpc":
        return instance.url(OTLP_GRPC_PORT)
    if protocol == "http":
        return instance.url(OTLP_HTTP_PORT)
    raise ValueError("protocol must be 'grpc' or 'http'.")
