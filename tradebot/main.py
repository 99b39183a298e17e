from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from aiohttp import web

from tradebot.api import Actions
from tradebot.config import AppConfig, load_app_config
from tradebot.core.errors import TelemetryError
from tradebot.core.time_utils import now_utc
from tradebot.data_feed import BybitClient
from tradebot.interfaces import create_rpc_app
from tradebot.storage import open_tables
from tradebot.telemetry import TelemetryEvent, TelemetryStorage, configure_logging, default_storage
from tradebot.traders import TraderRegistry


def build_app(config: AppConfig, logger: logging.Logger, telemetry: TelemetryStorage | None = None) -> web.Application:
    """Wire tables, traders and the exchange client into the RPC application."""

    tables = open_tables(config.storage.data_dir)
    traders = TraderRegistry(tables.trades)
    bybit_client = BybitClient(config.bybit)
    actions = Actions(tables, traders, bybit_client)
    app = create_rpc_app(actions, telemetry)

    async def _on_startup(_: web.Application) -> None:
        traders.replay(await tables.events.all(), await tables.trades.all())
        _log_lifecycle(telemetry, "startup", logger)

    async def _on_cleanup(_: web.Application) -> None:
        await bybit_client.close()
        _log_lifecycle(telemetry, "shutdown", logger)
        logger.info("Shutdown complete")

    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run the tradebot RPC server.")
    parser.add_argument("--config", type=Path, default=None, help="path to tradebot.yml")
    args = parser.parse_args(argv)

    config = load_app_config(args.config)
    logs_dir = Path(config.telemetry.logs_dir).resolve()
    logger = configure_logging(log_dir=logs_dir, level=config.telemetry.log_level)
    telemetry = default_storage(logs_dir)
    logger.info(
        "Bootstrapping tradebot",
        extra={"mode": config.bybit.mode.value, "symbol": config.bybit.symbol, "data_dir": config.storage.data_dir},
    )

    app = build_app(config, logger, telemetry)
    web.run_app(app, host=config.server.host, port=config.server.port, print=None)


def _log_lifecycle(telemetry: TelemetryStorage | None, stage: str, logger: logging.Logger) -> None:
    if telemetry is None:
        return
    event = TelemetryEvent(timestamp=now_utc(), event_type="lifecycle", payload={"stage": stage})
    try:
        telemetry.append_event(event)
    except TelemetryError as exc:  # pragma: no cover - telemetry path
        logger.warning("Failed to log lifecycle event: %s", exc)


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover - top-level safety
        print(f"Fatal error: {exc}", file=sys.stderr)
        raise
