"""Prometheus as the metric backend, scraping the collector's exporter."""
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from .api_models import PrometheusQueryRangeResponse
from .collector import SCRAPE_PORT
from .launcher import BackendSpec, ListeningPort, ServiceInstance, ServiceLauncher, Teardown
from .query import QueryResult, QueryVariant, poll
from .results import MetricSeries, Sample
from .settings import Settings

API_PORT = 9090
STEP = "10s"

CONFIG_TEMPLATE = """
global:
  scrape_interval: 2s
  evaluation_interval: 2s

scrape_configs:
  - job_name: otel
    static_configs:
      - targets: ["{collector_name}:{scrape_port}"]

otlp:
  keep_identifying_resource_attributes: true
  promote_resource_attributes:
    - service.instance.id
    - service.name
    - service.namespace
    - service.version

storage:
  tsdb:
    out_of_order_time_window: 10m
"""


def render_config(collector_name: str) -> str:
    return CONFIG_TEMPLATE.format(collector_name=collector_name, scrape_port=SCRAPE_PORT)


SPEC = BackendSpec(
    key="prometheus",
    ports=(API_PORT,),
    ready=ListeningPort(API_PORT),
    config_path="/etc/prometheus/prometheus.yml",
    render_config=render_config,
)


def start(
    network: Any, collector_name: str, settings: Settings | None = None, client: Any = None
) -> tuple[ServiceInstance, Teardown]:
    return ServiceLauncher(SPEC, settings=settings, client=client).start(network, collector_name=collector_name)


def normalize(resp: PrometheusQueryRangeResponse) -> list[MetricSeries]:
    return [
        MetricSeries(
            labels=dict(series.metric),
            samples=tuple(Sample(timestamp=float(ts), value=float(v)) for ts, v in series.values),
        )
        for series in resp.data.result
    ]


def data_points(series: list[MetricSeries]) -> int:
    """Samples in the first matching series."""
    if not series:
        return 0
    return len(series[0].samples)


METRICS = QueryVariant(
    kind="prometheus",
    decode=PrometheusQueryRangeResponse.model_validate,
    normalize=normalize,
    count=data_points,
)


def rfc3339(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def label_value(value: str) -> str:
    """Escape a string for use inside a double-quoted PromQL label matcher."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def metrics_endpoint(
    instance: ServiceInstance, metric_name: str, service: str, now: float, since: timedelta, elapsed: float
) -> str:
    """query_range URL for a window ending now.

    The start is pushed back by the time spent polling so far, so the
    window always reaches back to `since` before the first attempt.
    """
    params = {
        "query": f'{metric_name}{{service_name="{label_value(service)}"}}',
        "start": rfc3339(now - since.total_seconds() - elapsed),
        "end": rfc3339(now),
        "step": STEP,
    }
    return str(httpx.URL(instance.url(API_PORT, "/api/v1/query_range"), params=params))


def get_metrics(
    instance: ServiceInstance,
    expected_data_points: int,
    max_attempts: int,
    metric_name: str,
    service: str,
    since: timedelta,
    http: httpx.Client | None = None,
    settings: Settings | None = None,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
    clock: Callable[[], float] | None = None,
) -> QueryResult:
    """Return the series of `metric_name` for `service` over the last `since`.

    Succeeds once the first series holds `expected_data_points` samples.
    """
    return poll(
        METRICS,
        lambda now, elapsed: metrics_endpoint(instance, metric_name, service, now, since, elapsed),
        expected_data_points,
        max_attempts,
        http=http,
        settings=settings,
        cancel=cancel,
        sleep=sleep,
        clock=clock,
    )
