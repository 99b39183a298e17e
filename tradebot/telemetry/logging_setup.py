"""Centralized logging configuration for the service.

Records are written as JSON lines. Fields bound with :func:`log_context`
(the RPC server binds ``trace_id`` and ``rpc`` per request) are added to every
record logged inside the block, so handler logs can be correlated with the
``rpc_call`` telemetry event of the same request.
"""
from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}

_log_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("tradebot_log_context", default=None)


def current_context() -> Dict[str, Any]:
    """Fields bound to the running task by :func:`log_context`."""

    return dict(_log_context.get() or {})


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind ``fields`` to every record logged inside the block."""

    bound = {**current_context(), **fields}
    token = _log_context.set(bound)
    try:
        yield bound
    finally:
        _log_context.reset(token)


def new_trace_id() -> str:
    return uuid.uuid4().hex


class JsonFormatter(logging.Formatter):
    """One JSON object per record: base fields, ``extra`` fields, then bound context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRS or key in payload:
                continue
            if _serializable(key, value):
                payload[key] = value
        # Explicit ``extra`` wins over bound context.
        for key, value in current_context().items():
            if key not in payload and _serializable(key, value):
                payload[key] = value
        return json.dumps(payload, ensure_ascii=False)


def _serializable(key: str, value: Any) -> bool:
    try:
        json.dumps({key: value})
    except (TypeError, ValueError):
        return False
    return True


def configure_logging(
    *,
    log_dir: Path,
    level: str = "INFO",
    logger_name: str = "tradebot",
    backup_days: int = 14,
) -> Logger:
    """Log JSON to ``<log_dir>/tradebot_current.jsonl`` (rotated at midnight) and stderr."""

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tradebot_current.jsonl"
    formatter = JsonFormatter()

    file_handler = TimedRotatingFileHandler(log_file, when="midnight", backupCount=backup_days, encoding="utf-8")
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
    logger.propagate = False
    logger.debug("JSON logging configured", extra={"log_file": str(log_file)})
    return logger


__all__ = ["JsonFormatter", "configure_logging", "current_context", "log_context", "new_trace_id"]
