from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Jaeger: GET /api/traces ---


class JaegerKeyValue(_Wire):
    key: str
    type: str = "string"
    value: Any = None


class JaegerReference(_Wire):
    ref_type: str = Field(..., alias="refType", description="CHILD_OF or FOLLOWS_FROM")
    trace_id: str = Field(..., alias="traceID")
    span_id: str = Field(..., alias="spanID")


class JaegerLog(_Wire):
    timestamp: int = Field(..., description="Microseconds since epoch")
    fields: list[JaegerKeyValue] | None = None


class JaegerSpan(_Wire):
    trace_id: str = Field(..., alias="traceID")
    span_id: str = Field(..., alias="spanID")
    operation_name: str = Field("", alias="operationName")
    references: list[JaegerReference] | None = None
    start_time: int = Field(0, alias="startTime", description="Microseconds since epoch")
    duration: int = Field(0, description="Microseconds")
    tags: list[JaegerKeyValue] | None = None
    logs: list[JaegerLog] | None = None
    process_id: str = Field("", alias="processID")


class JaegerProcess(_Wire):
    service_name: str = Field("", alias="serviceName")
    tags: list[JaegerKeyValue] | None = None


class JaegerTrace(_Wire):
    trace_id: str = Field(..., alias="traceID")
    spans: list[JaegerSpan] | None = None
    processes: dict[str, JaegerProcess] | None = None


class JaegerTracesResponse(_Wire):
    data: list[JaegerTrace] | None = None
    total: int = 0
    limit: int = 0
    offset: int = 0
    errors: Any = None


# --- Seq: GET /api/events ---


class SeqToken(_Wire):
    text: str | None = Field(None, alias="Text")
    property_name: str | None = Field(None, alias="PropertyName")
    raw_text: str | None = Field(None, alias="RawText")
    formatted_value: str | None = Field(None, alias="FormattedValue")


class SeqProperty(_Wire):
    name: str = Field(..., alias="Name")
    value: Any = Field(None, alias="Value")


class SeqEvent(_Wire):
    id: str = Field("", alias="Id")
    timestamp: datetime = Field(..., alias="Timestamp")
    level: str | None = Field(None, alias="Level")
    message_template_tokens: list[SeqToken] | None = Field(None, alias="MessageTemplateTokens")
    properties: list[SeqProperty] | None = Field(None, alias="Properties")
    trace_id: str | None = Field(None, alias="TraceId")
    span_id: str | None = Field(None, alias="SpanId")


# --- Prometheus: GET /api/v1/query_range ---


class PrometheusSeries(_Wire):
    metric: dict[str, str] = Field(default_factory=dict)
    values: list[tuple[float, str]] = Field(default_factory=list, description="[unix seconds, value as string]")


class PrometheusData(_Wire):
    result_type: str = Field("", alias="resultType")
    result: list[PrometheusSeries] = Field(default_factory=list)


class PrometheusQueryRangeResponse(_Wire):
    status: str = "success"
    data: PrometheusData
