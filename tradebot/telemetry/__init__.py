"""Telemetry and logging subsystem package."""
from .events import TelemetryEvent
from .logging_setup import configure_logging, current_context, log_context, new_trace_id
from .storage import TelemetryStorage, default_storage

__all__ = [
    "TelemetryEvent",
    "configure_logging",
    "current_context",
    "log_context",
    "new_trace_id",
    "TelemetryStorage",
    "default_storage",
]
