"""Structured telemetry models."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict


@dataclass(slots=True)
class TelemetryEvent:
    """Generic event used by JSON-line logs under ``events_YYYYMMDD.jsonl``."""

    timestamp: datetime
    event_type: str
    level: str = "INFO"
    payload: Dict[str, Any] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


__all__ = ["TelemetryEvent"]
