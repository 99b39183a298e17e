"""Error hierarchy shared by the tradebot subsystems.

Handlers raise :class:`ActionError` for anything the caller can fix (missing
token, foreign provider, duplicate username). The RPC layer reports those
messages verbatim; every other :class:`CoreError` is treated as a server fault.
"""
from __future__ import annotations


class CoreError(Exception):
    """Base class for all custom exceptions in the application."""


class ConfigurationError(CoreError):
    """Raised when configuration files are missing or invalid."""


class ActionError(CoreError):
    """Raised when a request fails validation or an ownership check."""


class NotFoundError(ActionError):
    """Raised when a record id does not resolve."""


class StorageError(CoreError):
    """Raised when table JSON files cannot be read or written."""


class MarketDataError(CoreError):
    """Raised for failures while fetching or parsing exchange data."""


class TelemetryError(CoreError):
    """Raised for telemetry/logging persistence issues."""


def require(condition: object, message: str) -> None:
    """Raise :class:`ActionError` with ``message`` unless ``condition`` is truthy."""

    if not condition:
        raise ActionError(message)
