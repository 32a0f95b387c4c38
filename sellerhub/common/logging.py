"""
JSON-line logging for the orders engine.

Every record carries the service identity (service, env, revision) and the id
of the aggregation run or mutation call that produced it, so one snapshot can
be followed through normalization, hydration and emission.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

_RUN_ID: ContextVar[Optional[str]] = ContextVar("sellerhub_run_id", default=None)

_SEVERITIES = frozenset({"DEBUG", "INFO", "NOTICE", "WARNING", "ERROR", "CRITICAL"})

# LogRecord attributes that are never copied into the payload.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}
_PAYLOAD_KEYS = frozenset({"timestamp", "severity", "service", "env", "revision", "run_id", "event_type", "logger"})

# Chatty third-party loggers; the Firestore listener thread logs every resume token at DEBUG.
_QUIET_LOGGERS = ("google.cloud.firestore_v1.watch", "google.api_core.bidi", "urllib3")


def _short(value: Any, limit: int) -> str:
    text = "" if value is None else str(value).replace("\n", " ").strip()
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _severity(levelname: str) -> str:
    name = levelname.upper()
    if name == "WARN":
        return "WARNING"
    return name if name in _SEVERITIES else "INFO"


def default_revision() -> str:
    for name in ("K_REVISION", "APP_VERSION", "GIT_SHA"):
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return "unknown"


def get_run_id() -> Optional[str]:
    return _RUN_ID.get()


@contextmanager
def bind_run_id(*, run_id: str | None = None) -> Iterator[str]:
    """
    Bind a run id for the lifetime of the block.

    Context variables follow asyncio tasks, so every record logged while one
    snapshot is being normalized/enriched carries the same run id.
    """
    rid = _short(run_id, 128) or uuid.uuid4().hex
    token = _RUN_ID.set(rid)
    try:
        yield rid
    finally:
        _RUN_ID.reset(token)


class JsonLogFormatter(logging.Formatter):
    def __init__(self, *, service: str, env: str, revision: str | None = None) -> None:
        super().__init__()
        self.service = service
        self.env = env
        self.revision = revision or default_revision()

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": _severity(record.levelname),
            "service": self.service,
            "env": self.env,
            "revision": self.revision,
            "run_id": getattr(record, "run_id", None) or get_run_id(),
            "event_type": getattr(record, "event_type", None) or "log",
            "message": _short(record.getMessage(), 4000),
            "logger": record.name,
        }
        if record.exc_info:
            payload["exception"] = "".join(traceback.format_exception(*record.exc_info))[-8000:]

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in _PAYLOAD_KEYS or key.startswith("_"):
                continue
            payload[key] = value

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def init_structured_logging(*, service: str, env: str, level: str | int = "INFO") -> None:
    """
    Route the root logger to stdout as JSON lines.

    Replaces any previously installed handlers, so calling it again
    reconfigures rather than duplicates output.
    """
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(service=service, env=env))
    root.handlers = [handler]

    logging.captureWarnings(True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_event(
    logger: logging.Logger,
    event_type: str,
    *,
    severity: str = "INFO",
    message: str | None = None,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    """Log a semantic event with a stable `event_type` and structured fields."""
    level = getattr(logging, severity.upper(), logging.INFO)
    logger.log(level, message or event_type, exc_info=exc_info, extra={"event_type": event_type, **fields})
