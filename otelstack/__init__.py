"""otelstack: throwaway observability backends for integration tests.

Starts, on a private docker network:
 - an OpenTelemetry collector accepting OTLP over gRPC and HTTP
 - Jaeger for traces
 - Seq for logs
 - Prometheus for metrics (scraping the collector)

and provides clients that poll those backends until the telemetry a test
emitted has arrived.
"""
from __future__ import annotations

from .errors import (
    ConfigurationError,
    DecodeError,
    InsufficientResultsError,
    LaunchError,
    NetworkCreationError,
    NonRetryableResponseError,
    OtelStackError,
    PortResolutionError,
    QueryCancelledError,
    QueryError,
    ReadinessTimeoutError,
    RetryableResponseError,
    StackStartError,
    TeardownError,
    TransportError,
)
from .launcher import ServiceInstance, ServiceLauncher
from .query import QueryResult
from .results import KeyValue, LogEvent, MetricSeries, Reference, Sample, Span, SpanLog, TraceRecord
from .settings import Settings
from .stack import ServiceToggles, Stack, start_stack

__all__ = [
    "ConfigurationError",
    "DecodeError",
    "InsufficientResultsError",
    "KeyValue",
    "LaunchError",
    "LogEvent",
    "MetricSeries",
    "NetworkCreationError",
    "NonRetryableResponseError",
    "OtelStackError",
    "PortResolutionError",
    "QueryCancelledError",
    "QueryError",
    "QueryResult",
    "ReadinessTimeoutError",
    "Reference",
    "RetryableResponseError",
    "Sample",
    "ServiceInstance",
    "ServiceLauncher",
    "ServiceToggles",
    "Settings",
    "Span",
    "SpanLog",
    "Stack",
    "StackStartError",
    "TeardownError",
    "TraceRecord",
    "TransportError",
    "start_stack",
]
