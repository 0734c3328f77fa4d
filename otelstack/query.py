"""Polling retrieval shared by the trace, log and metric clients.

Telemetry shows up in the backends eventually, so every query is a loop:
request, decode, normalize, count; stop once enough records are visible or
the attempts run out. Between attempts the loop waits a fixed interval.

Each backend plugs in as a `QueryVariant` value carrying its own decode,
normalize and count functions.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from .errors import (
    ConfigurationError,
    DecodeError,
    InsufficientResultsError,
    NonRetryableResponseError,
    QueryCancelledError,
    QueryError,
    RetryableResponseError,
    TransportError,
)
from .events import log_event
from .settings import Settings, settings as default_settings

RETRYABLE_STATUS_CODES = frozenset({408, 409, 423, 425, 429, 500, 502, 503, 504})

# (now, elapsed since first attempt) -> endpoint url
EndpointBuilder = Callable[[float, float], str]


@dataclass(frozen=True)
class QueryVariant:
    kind: str
    decode: Callable[[Any], Any]
    normalize: Callable[[Any], list[Any]]
    count: Callable[[list[Any]], int] = len


@dataclass(frozen=True)
class QueryResult:
    records: list[Any]
    endpoint: str
    attempts: int


def is_retryable(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES


def fetch(http: httpx.Client, endpoint: str, timeout_s: float | None = None) -> Any:
    """Issue one GET and return the parsed JSON body."""
    try:
        resp = http.get(endpoint, timeout=timeout_s)
    except httpx.HTTPError as e:
        raise TransportError(f"could not get response on endpoint {endpoint}: {e}", endpoint=endpoint) from e

    if resp.status_code != 200:
        cls = RetryableResponseError if is_retryable(resp.status_code) else NonRetryableResponseError
        raise cls(
            f"response was not 200: got {resp.status_code} on endpoint {endpoint}",
            status_code=resp.status_code,
            endpoint=endpoint,
        )

    try:
        return resp.json()
    except ValueError as e:
        raise DecodeError(f"could not parse response body {resp.text[:200]!r} as JSON", endpoint=endpoint) from e


def poll(
    variant: QueryVariant,
    build_endpoint: EndpointBuilder,
    expected_count: int,
    max_attempts: int,
    http: httpx.Client | None = None,
    settings: Settings | None = None,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
    clock: Callable[[], float] | None = None,
) -> QueryResult:
    """Query until at least `expected_count` records are visible.

    Raises InsufficientResultsError after `max_attempts` requests that came
    back short. Non-retryable statuses, transport failures and undecodable
    bodies end the loop immediately.
    """
    if max_attempts < 1:
        raise ConfigurationError(f"{variant.kind}: max_attempts must be >= 1, got {max_attempts}")
    if expected_count < 0:
        raise ConfigurationError(f"{variant.kind}: expected_count must be >= 0, got {expected_count}")

    s = settings or default_settings
    clock = clock or time.time
    owns_client = http is None
    client = http if http is not None else httpx.Client(timeout=s.http_timeout_s)

    first = clock()
    endpoint = ""
    attempt = 0
    try:
        while True:
            attempt += 1
            if attempt > 1:
                _wait(s.poll_interval_s, cancel, sleep)
            if cancel is not None and cancel.is_set():
                raise QueryCancelledError(
                    f"{variant.kind}: query cancelled after {attempt - 1} attempt(s)",
                    endpoint=endpoint or None,
                    attempts=attempt - 1,
                )

            now = clock()
            endpoint = build_endpoint(now, now - first)

            try:
                payload = fetch(client, endpoint, s.http_timeout_s)
            except RetryableResponseError as e:
                e.attempts = attempt
                log_event("WARN", f"attempt {attempt}/{max_attempts}: {e}", service_name=variant.kind)
                if attempt == max_attempts:
                    raise
                continue
            except QueryError as e:
                e.attempts = attempt
                raise

            # pydantic.ValidationError is a ValueError.
            try:
                records = variant.normalize(variant.decode(payload))
            except (ValueError, TypeError) as e:
                raise DecodeError(
                    f"{variant.kind}: unexpected response shape from {endpoint}: {e}", endpoint=endpoint, attempts=attempt
                ) from e

            count = variant.count(records)
            if count >= expected_count:
                return QueryResult(records=records, endpoint=endpoint, attempts=attempt)

            log_event(
                "DEBUG",
                f"attempt {attempt}/{max_attempts}: {count} of {expected_count} {variant.kind} record(s) visible",
                service_name=variant.kind,
            )
            if attempt == max_attempts:
                raise InsufficientResultsError(
                    f"{variant.kind}: could not get {expected_count} record(s) in {max_attempts} attempt(s), got {count}",
                    expected=expected_count,
                    received=count,
                    endpoint=endpoint,
                    attempts=attempt,
                )
    finally:
        if owns_client:
            client.close()


def _wait(interval_s: float, cancel: threading.Event | None, sleep: Callable[[float], None] | None) -> None:
    if sleep is not None:
        sleep(interval_s)
    elif cancel is not None:
        cancel.wait(interval_s)
    else:
        time.sleep(interval_s)
