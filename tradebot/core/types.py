"""Shared type aliases."""
from __future__ import annotations

from typing import NewType

TimestampMs = NewType("TimestampMs", int)
Symbol = NewType("Symbol", str)
