"""Configuration loading and validation package."""

from .loader import load_app_config, resolve_config_path
from .models import AppConfig, BybitConfig, BybitMode, ServerConfig, StorageConfig, TelemetryConfig

__all__ = [
    "AppConfig",
    "BybitConfig",
    "BybitMode",
    "ServerConfig",
    "StorageConfig",
    "TelemetryConfig",
    "load_app_config",
    "resolve_config_path",
]
