from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from tradebot.telemetry.events import TelemetryEvent
from tradebot.telemetry.logging_setup import JsonFormatter, configure_logging, current_context, log_context
from tradebot.telemetry.storage import TelemetryStorage, default_storage


def test_telemetry_storage_should_append_daily_jsonl(tmp_path) -> None:
    storage = TelemetryStorage(logs_dir=tmp_path / "logs")
    first = TelemetryEvent(
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        event_type="rpc_call",
        payload={"action": "ping", "status": 200},
    )
    second = TelemetryEvent(
        timestamp=datetime(2024, 1, 1, 12, tzinfo=timezone.utc),
        event_type="lifecycle",
        context={"phase": "startup"},
    )
    path = storage.append_event(first)
    assert storage.append_event(second) == path
    assert path.name == "events_20240101.jsonl"

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["event_type"] for line in lines] == ["rpc_call", "lifecycle"]
    assert lines[0]["timestamp"] == "2024-01-01T00:00:00+00:00"
    assert lines[1]["context"] == {"phase": "startup"}


def test_default_storage_should_nest_under_telemetry(tmp_path) -> None:
    storage = default_storage(tmp_path)
    path = storage.append_event(TelemetryEvent(timestamp=datetime.now(timezone.utc), event_type="x"))
    assert path.parent == tmp_path / "telemetry"


def test_json_formatter_should_include_extra_fields() -> None:
    record = logging.LogRecord("tradebot.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.userid = "abc"
    record.unserializable = object()
    data = json.loads(JsonFormatter().format(record))
    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["userid"] == "abc"
    assert "unserializable" not in data
    assert "args" not in data


def test_configure_logging_should_write_json_file(tmp_path) -> None:
    logger = configure_logging(log_dir=tmp_path, level="debug", logger_name="tradebot.test_logging")
    logger.info("served", extra={"action": "ping"})
    for handler in logger.handlers:
        handler.flush()
    lines = (tmp_path / "tradebot_current.jsonl").read_text(encoding="utf-8").splitlines()
    served = [json.loads(line) for line in lines if "served" in line]
    assert served[0]["action"] == "ping"
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_json_formatter_should_add_bound_context() -> None:
    formatter = JsonFormatter()
    record = logging.LogRecord("tradebot.test", logging.INFO, __file__, 1, "inside", None, None)
    record.rpc = "explicit"
    with log_context(trace_id="abc123", rpc="me"):
        with log_context(userid="u-1"):
            data = json.loads(formatter.format(record))
            assert current_context() == {"trace_id": "abc123", "rpc": "me", "userid": "u-1"}
        assert "userid" not in current_context()
    assert data["trace_id"] == "abc123"
    assert data["userid"] == "u-1"
    assert data["rpc"] == "explicit"
    assert current_context() == {}
    assert "trace_id" not in json.loads(formatter.format(record))
