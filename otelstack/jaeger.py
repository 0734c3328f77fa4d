"""Jaeger all-in-one as the trace backend.

Ports: 16686 query UI/API, 14268 collector HTTP, 6831 agent (compact thrift),
4317 OTLP gRPC (what the collector exports to).
"""
from __future__ import annotations

import threading
from typing import Any, Callable

import httpx

from .api_models import JaegerKeyValue, JaegerSpan, JaegerTracesResponse
from .launcher import BackendSpec, LogLine, ServiceInstance, ServiceLauncher, Teardown
from .query import QueryResult, QueryVariant, poll
from .results import KeyValue, Reference, Span, SpanLog, TraceRecord
from .settings import Settings

QUERY_PORT = 16686
OTLP_GRPC_PORT = 4317

SPEC = BackendSpec(
    key="jaeger",
    ports=(QUERY_PORT, 14268, 6831, OTLP_GRPC_PORT),
    ready=LogLine('"msg":"Health Check state change","status":"ready"'),
)


def start(network: Any = None, settings: Settings | None = None, client: Any = None) -> tuple[ServiceInstance, Teardown]:
    return ServiceLauncher(SPEC, settings=settings, client=client).start(network)


def _key_values(items: list[JaegerKeyValue] | None) -> tuple[KeyValue, ...]:
    return tuple(KeyValue(key=kv.key, type=kv.type, value=kv.value) for kv in items or [])


def _span(s: JaegerSpan) -> Span:
    return Span(
        trace_id=s.trace_id,
        span_id=s.span_id,
        operation_name=s.operation_name,
        references=tuple(
            Reference(ref_type=r.ref_type, trace_id=r.trace_id, span_id=r.span_id) for r in s.references or []
        ),
        start_time=s.start_time,
        duration=s.duration,
        tags=_key_values(s.tags),
        logs=tuple(SpanLog(timestamp=log.timestamp, fields=_key_values(log.fields)) for log in s.logs or []),
        process_id=s.process_id,
    )


def normalize(resp: JaegerTracesResponse) -> list[TraceRecord]:
    out: list[TraceRecord] = []
    for t in resp.data or []:
        out.append(
            TraceRecord(
                trace_id=t.trace_id,
                spans=tuple(_span(s) for s in t.spans or []),
                processes={pid: p.service_name for pid, p in (t.processes or {}).items()},
            )
        )
    return out


TRACES = QueryVariant(kind="jaeger", decode=JaegerTracesResponse.model_validate, normalize=normalize)


def traces_endpoint(instance: ServiceInstance, service: str, limit: int) -> str:
    return str(httpx.URL(instance.url(QUERY_PORT, "/api/traces"), params={"service": service, "limit": limit}))


def get_traces(
    instance: ServiceInstance,
    expected_traces: int,
    max_attempts: int,
    service: str,
    http: httpx.Client | None = None,
    settings: Settings | None = None,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
) -> QueryResult:
    """Return the latest traces Jaeger holds for `service`.

    Keeps fetching every poll interval, at most `max_attempts` times, until
    at least `expected_traces` traces come back.
    """
    endpoint = traces_endpoint(instance, service, expected_traces)
    return poll(
        TRACES,
        lambda now, elapsed: endpoint,
        expected_traces,
        max_attempts,
        http=http,
        settings=settings,
        cancel=cancel,
        sleep=sleep,
    )
