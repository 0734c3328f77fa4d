"""Scripted stand-ins for the Jaeger, Seq and Prometheus query APIs.

Each app answers its query path from a list of (status, body) pairs, one per
request, repeating the last pair once the script runs out. Wrap the app in
fastapi's TestClient and hand that to the query functions as `http`.
"""
from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

JAEGER_PATH = "/api/traces"
SEQ_PATH = "/api/events"
PROMETHEUS_PATH = "/api/v1/query_range"


class ScriptedBackend:
    def __init__(self, path: str, script: list[tuple[int, Any]]):
        self.path = path
        self.script = list(script)
        self.requests: list[str] = []
        self.app = FastAPI()
        self.app.add_api_route(path, self._handle, methods=["GET"])

    def _handle(self, request: Request):
        self.requests.append(str(request.url))
        status, body = self.script[min(len(self.requests), len(self.script)) - 1]
        if isinstance(body, str):
            return PlainTextResponse(body, status_code=status)
        return JSONResponse(body, status_code=status)


# --- payload builders ---


def jaeger_span(trace_id: str, span_id: str, operation: str, parent: str | None = None) -> dict[str, Any]:
    refs = []
    if parent:
        refs.append({"refType": "CHILD_OF", "traceID": trace_id, "spanID": parent})
    return {
        "traceID": trace_id,
        "spanID": span_id,
        "operationName": operation,
        "references": refs,
        "startTime": 1700000000000000,
        "duration": 1500,
        "tags": [{"key": "test-key", "type": "string", "value": "test-value"}],
        "logs": [
            {
                "timestamp": 1700000000000500,
                "fields": [{"key": "event", "type": "string", "value": "cache miss"}],
            }
        ],
        "processID": "p1",
        "warnings": None,
    }


def jaeger_traces(n: int) -> dict[str, Any]:
    data = []
    for i in range(n):
        trace_id = f"{i:032x}"
        data.append(
            {
                "traceID": trace_id,
                "spans": [jaeger_span(trace_id, f"{i:016x}", "test-segment")],
                "processes": {"p1": {"serviceName": "test.service", "tags": []}},
                "warnings": None,
            }
        )
    return {"data": data, "total": 0, "limit": 0, "offset": 0, "errors": None}


def seq_events(n: int) -> list[dict[str, Any]]:
    return [
        {
            "Id": f"event-{i}",
            "Timestamp": "2025-01-02T03:04:05.678Z",
            "Level": "Error",
            "MessageTemplateTokens": [{"Text": "test message"}],
            "Properties": [{"Name": "attempt", "Value": i}],
            "TraceId": "0af7651916cd43dd8448eb211c80319c",
            "SpanId": "b7ad6b7169203331",
        }
        for i in range(n)
    ]


def prometheus_matrix(points: int, name: str = "requests_total") -> dict[str, Any]:
    result = []
    if points:
        result.append(
            {
                "metric": {"__name__": name, "service_name": "test.service", "job": "otel"},
                "values": [[1700000000 + 10 * i, str(i + 1)] for i in range(points)],
            }
        )
    return {"status": "success", "data": {"resultType": "matrix", "result": result}}
