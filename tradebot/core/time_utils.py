"""Helpers for timestamps.

Records store creation/update times as integer milliseconds since the epoch so
they sort cheaply and serialize to JSON without conversion.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone

from .types import TimestampMs


def now_utc() -> datetime:
    """Return the current UTC datetime with tzinfo."""

    return datetime.now(timezone.utc)


def now_ms() -> TimestampMs:
    """Return the current time in epoch milliseconds."""

    return TimestampMs(int(time.time() * 1000))

