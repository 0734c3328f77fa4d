from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any

from .settings import settings

logger = logging.getLogger("otelstack")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str | None:
    """Return the sqlite file for the event journal, or None when journaling is off.

    If the configured path is a directory the journal file is placed inside it.
    """
    if not settings.event_db:
        return None

    p = os.path.abspath(settings.event_db)
    if os.path.isdir(p):
        p = os.path.join(p, "otelstack-events.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect(path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(path: str) -> None:
    with connect(path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              service_name TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            """
        )


def log_event(level: str, message: str, service_name: str | None = None) -> None:
    level = level.upper()
    prefix = f"[{service_name}] " if service_name else ""
    logger.log(_LEVELS.get(level, logging.INFO), "%s%s", prefix, message)

    path = _resolve_db_path()
    if path is None:
        return
    init_db(path)
    with connect(path) as conn:
        conn.execute(
            "INSERT INTO events (ts, level, service_name, message) VALUES (?, ?, ?, ?)",
            (utc_now(), level, service_name, message),
        )


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    path = _resolve_db_path()
    if path is None or not os.path.exists(path):
        return []
    init_db(path)
    with connect(path) as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
