"""Seq as the log backend.

Port 80 serves the UI, the events API and OTLP/HTTP ingestion
(`/ingest/otlp`); 5341 is the native ingestion port.
"""
from __future__ import annotations

import threading
from typing import Any, Callable

import httpx
from pydantic import TypeAdapter

from .api_models import SeqEvent, SeqToken
from .launcher import BackendSpec, ListeningPort, ServiceInstance, ServiceLauncher, Teardown
from .query import QueryResult, QueryVariant, poll
from .results import LogEvent
from .settings import Settings

API_PORT = 80
INGEST_PORT = 5341

SPEC = BackendSpec(
    key="seq",
    ports=(API_PORT, INGEST_PORT),
    ready=ListeningPort(API_PORT),
    env={"ACCEPT_EULA": "Y"},
)

_events_adapter = TypeAdapter(list[SeqEvent])


def start(network: Any = None, settings: Settings | None = None, client: Any = None) -> tuple[ServiceInstance, Teardown]:
    return ServiceLauncher(SPEC, settings=settings, client=client).start(network)


def _token_text(tok: SeqToken) -> str:
    # Property tokens carry the rendered value instead of Text.
    for text in (tok.text, tok.formatted_value, tok.raw_text):
        if text is not None:
            return text
    return ""


def normalize(events: list[SeqEvent]) -> list[LogEvent]:
    return [
        LogEvent(
            id=e.id,
            timestamp=e.timestamp,
            message_tokens=tuple(_token_text(t) for t in e.message_template_tokens or []),
            properties={p.name: p.value for p in e.properties or []},
            level=e.level,
            trace_id=e.trace_id,
            span_id=e.span_id,
        )
        for e in events
    ]


EVENTS = QueryVariant(kind="seq", decode=_events_adapter.validate_python, normalize=normalize)


def events_endpoint(instance: ServiceInstance, count: int) -> str:
    return str(httpx.URL(instance.url(API_PORT, "/api/events"), params={"count": count}))


def get_events(
    instance: ServiceInstance,
    expected_events: int,
    max_attempts: int,
    http: httpx.Client | None = None,
    settings: Settings | None = None,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
) -> QueryResult:
    """Return the last log events Seq received, newest first."""
    endpoint = events_endpoint(instance, expected_events)
    return poll(
        EVENTS,
        lambda now, elapsed: endpoint,
        expected_events,
        max_attempts,
        http=http,
        settings=settings,
        cancel=cancel,
        sleep=sleep,
    )
