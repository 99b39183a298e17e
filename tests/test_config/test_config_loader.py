from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from tradebot.config.loader import CONFIG_ENV_VAR, load_app_config, resolve_config_path
from tradebot.config.models import BybitMode
from tradebot.core.errors import ConfigurationError


def _write_yaml(path: Path, content: str) -> Path:
    path.write_text(dedent(content), encoding="utf-8")
    return path


def test_load_app_config_should_parse_valid_yaml(tmp_path: Path) -> None:
    path = _write_yaml(
        tmp_path / "tradebot.yml",
        """
        server:
          host: 127.0.0.1
          port: 9000
        bybit:
          mode: demo
          symbol: ETHUSDT
          max_retries: 5
        storage:
          data_dir: /tmp/tables
        telemetry:
          log_level: DEBUG
          logs_dir: /tmp/logs
        """,
    )
    config = load_app_config(path)
    assert config.server.port == 9000
    assert config.bybit.mode is BybitMode.DEMO
    assert config.bybit.symbol == "ETHUSDT"
    assert config.bybit.max_retries == 5
    assert config.storage.data_dir == "/tmp/tables"
    assert config.telemetry.log_level == "DEBUG"


def test_load_app_config_should_accept_blank_file(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "tradebot.yml", "")
    config = load_app_config(path)
    assert config.bybit.mode is BybitMode.LIVE
    assert config.bybit.symbol == "BTCUSDT"
    assert config.server.port == 8080


def test_load_app_config_should_reject_non_mapping_root(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "tradebot.yml", "- a\n- b\n")
    with pytest.raises(ValueError):
        load_app_config(path)


def test_load_app_config_should_wrap_validation_errors(tmp_path: Path) -> None:
    path = _write_yaml(
        tmp_path / "tradebot.yml",
        """
        bybit:
          mode: paper
        """,
    )
    with pytest.raises(ConfigurationError):
        load_app_config(path)


def test_load_app_config_should_require_existing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_app_config(tmp_path / "missing.yml")


def test_resolve_config_path_should_prefer_env_over_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.yml"))
    assert resolve_config_path() == tmp_path / "env.yml"
    assert resolve_config_path(tmp_path / "explicit.yml") == tmp_path / "explicit.yml"
    monkeypatch.delenv(CONFIG_ENV_VAR)
    assert resolve_config_path() == Path("config") / "tradebot.yml"
