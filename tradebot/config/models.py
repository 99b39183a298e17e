"""Typed configuration models for the tradebot service.

The config subsystem relies on pydantic to validate the YAML file and to
provide strongly-typed objects to the rest of the runtime. Every section has
defaults so an empty file still yields a working local setup.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class BybitMode(str, Enum):
    """Supported Bybit environments."""

    LIVE = "live"
    DEMO = "demo"


class BybitConfig(BaseModel):
    """Exchange ticker source.

    ``symbol`` is the instrument reported by ``getTicker`` and attached to every
    consumed event; ``rest_endpoint`` overrides the per-mode default host.
    """

    mode: BybitMode = BybitMode.LIVE
    rest_endpoint: Optional[str] = None
    category: str = Field("linear", min_length=1)
    symbol: str = Field("BTCUSDT", min_length=3)
    timeout_sec: float = Field(5.0, gt=0)
    max_retries: PositiveInt = 3
    backoff_base_sec: float = Field(0.25, ge=0)


class ServerConfig(BaseModel):
    """HTTP listener for the RPC surface."""

    host: str = "0.0.0.0"
    port: int = Field(8080, ge=1, le=65535)


class StorageConfig(BaseModel):
    """Where the JSON tables live. ``None`` keeps everything in memory."""

    data_dir: Optional[str] = Field("data/tables")


class TelemetryConfig(BaseModel):
    """Logging switches and telemetry output directory."""

    log_level: str = Field("INFO")
    logs_dir: str = Field("data/logs")


class AppConfig(BaseModel):
    """Runtime config composed of server, exchange, storage and telemetry."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    bybit: BybitConfig = Field(default_factory=BybitConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    model_config = ConfigDict(frozen=True)
