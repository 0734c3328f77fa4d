from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class KeyValue:
    key: str
    type: str
    value: Any


@dataclass(frozen=True)
class Reference:
    ref_type: str  # CHILD_OF|FOLLOWS_FROM
    trace_id: str
    span_id: str


@dataclass(frozen=True)
class SpanLog:
    timestamp: int
    fields: tuple[KeyValue, ...] = ()


@dataclass(frozen=True)
class Span:
    trace_id: str
    span_id: str
    operation_name: str
    references: tuple[Reference, ...] = ()
    start_time: int = 0
    duration: int = 0
    tags: tuple[KeyValue, ...] = ()
    logs: tuple[SpanLog, ...] = ()
    process_id: str = ""

    def tag(self, key: str) -> Any:
        for kv in self.tags:
            if kv.key == key:
                return kv.value
        return None

    @property
    def parent_span_id(self) -> str | None:
        for ref in self.references:
            if ref.ref_type == "CHILD_OF":
                return ref.span_id
        return None


@dataclass(frozen=True)
class TraceRecord:
    trace_id: str
    spans: tuple[Span, ...] = ()
    processes: dict[str, str] = field(default_factory=dict)  # process id -> service name

    def span(self, operation_name: str) -> Span | None:
        for s in self.spans:
            if s.operation_name == operation_name:
                return s
        return None


@dataclass(frozen=True)
class LogEvent:
    id: str
    timestamp: datetime
    message_tokens: tuple[str, ...] = ()
    properties: dict[str, Any] = field(default_factory=dict)
    level: str | None = None
    trace_id: str | None = None
    span_id: str | None = None

    @property
    def message(self) -> str:
        return "".join(self.message_tokens)


@dataclass(frozen=True)
class Sample:
    timestamp: float  # unix seconds
    value: float


@dataclass(frozen=True)
class MetricSeries:
    labels: dict[str, str] = field(default_factory=dict)
    samples: tuple[Sample, ...] = ()

    @property
    def name(self) -> str | None:
        return self.labels.get("__name__")
