from __future__ import annotations

import time

import httpx

from .collector import HEALTH_PATH, HEALTH_PORT
from .launcher import ServiceInstance


def check_health(url: str, timeout_s: float = 2.0, client: httpx.Client | None = None) -> tuple[bool, str, float | None]:
    """Call a health-check endpoint.

    Any 200 counts as healthy; the JSON `status` field, when present, becomes the message.
    Returns (is_healthy, message, latency_ms).
    """
    start = time.time()
    try:
        if client is not None:
            resp = client.get(url, timeout=timeout_s)
        else:
            with httpx.Client(timeout=timeout_s, follow_redirects=False) as c:
                resp = c.get(url)
        latency_ms = round((time.time() - start) * 1000.0, 2)
        if resp.status_code != 200:
            return False, f"HTTP {resp.status_code}", latency_ms
        try:
            data = resp.json()
        except ValueError:
            return True, "Healthy", latency_ms
        if isinstance(data, dict) and data.get("status"):
            return True, str(data["status"]), latency_ms
        return True, "Healthy", latency_ms
    except (httpx.ConnectError, httpx.ReadTimeout):
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, "No response", latency_ms
    except httpx.HTTPError as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, f"Error: {type(e).__name__}: {e}", latency_ms


def collector_health(instance: ServiceInstance, timeout_s: float = 2.0, client: httpx.Client | None = None) -> tuple[bool, str, float | None]:
    return check_health(instance.url(HEALTH_PORT, HEALTH_PATH), timeout_s=timeout_s, client=client)
