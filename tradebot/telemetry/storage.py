"""Helpers for persisting telemetry events."""
from __future__ import annotations

import json
from pathlib import Path

from tradebot.core.errors import TelemetryError
from tradebot.telemetry.events import TelemetryEvent


class TelemetryStorage:
    """Append structured telemetry events to daily JSON-line files.

    The RPC server records one ``rpc_call`` event per request; start-up and
    shutdown are recorded by :mod:`tradebot.main`.
    """

    def __init__(self, *, logs_dir: Path) -> None:
        self._logs_dir = logs_dir
        self._logs_dir.mkdir(parents=True, exist_ok=True)

    def append_event(self, event: TelemetryEvent) -> Path:
        """Append ``event`` as JSON to ``events_YYYYMMDD.jsonl``."""

        date_str = event.timestamp.strftime("%Y%m%d")
        path = self._logs_dir / f"events_{date_str}.jsonl"
        try:
            with path.open("a", encoding="utf-8") as handle:
                json.dump(event.to_dict(), handle, ensure_ascii=False, default=str)
                handle.write("\n")
        except OSError as exc:  # pragma: no cover - filesystem errors are rare
            raise TelemetryError(f"Failed to write telemetry event: {exc}") from exc
        return path


def default_storage(base_dir: Path) -> TelemetryStorage:
    """Factory returning storage rooted under ``base_dir``."""

    return TelemetryStorage(logs_dir=base_dir / "telemetry")


__all__ = ["TelemetryStorage", "default_storage"]
