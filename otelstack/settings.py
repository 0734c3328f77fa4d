from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Where mapped container ports are reachable from the test process.
    host: str = os.getenv("OTELSTACK_HOST", "localhost")

    # Launch
    startup_timeout_s: float = _env_float("OTELSTACK_STARTUP_TIMEOUT_S", 60.0)
    stop_timeout_s: int = _env_int("OTELSTACK_STOP_TIMEOUT_S", 30)
    readiness_poll_s: float = _env_float("OTELSTACK_READINESS_POLL_S", 0.5)

    # Query polling
    poll_interval_s: float = _env_float("OTELSTACK_POLL_INTERVAL_S", 2.0)
    http_timeout_s: float = _env_float("OTELSTACK_HTTP_TIMEOUT_S", 10.0)

    # Optional sqlite journal of lifecycle events.
    event_db: str | None = os.getenv("OTELSTACK_EVENT_DB")

    # Images
    collector_image: str = os.getenv("OTELSTACK_COLLECTOR_IMAGE", "otel/opentelemetry-collector:0.117.0")
    jaeger_image: str = os.getenv("OTELSTACK_JAEGER_IMAGE", "jaegertracing/all-in-one:1.65.0")
    seq_image: str = os.getenv("OTELSTACK_SEQ_IMAGE", "datalust/seq:2024.3")
    prometheus_image: str = os.getenv("OTELSTACK_PROMETHEUS_IMAGE", "prom/prometheus:v3.2.1")


settings = Settings()
