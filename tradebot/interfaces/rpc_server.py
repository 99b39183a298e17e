"""HTTP transport for the request handlers.

Endpoints:
  POST /rpc/{name}  -- call handler ``name`` with the JSON object body as params
  GET  /rpc         -- list available handler names
  GET  /health      -- liveness check

Responses are ``{"result": ...}`` on success and ``{"error": "..."}`` otherwise:
400 for validation failures raised by the handlers, 404 for unknown names and
500 for anything unexpected. One ``rpc_call`` telemetry event is written per
request when a :class:`TelemetryStorage` is attached.

Each call runs under a trace id, taken from the ``X-Trace-Id`` request header
or generated, which is echoed in the response header, bound to every log
record of the call and stored with its telemetry event.
"""
from __future__ import annotations

import inspect
import json
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping

from aiohttp import web

from tradebot.api.actions import RPC_METHODS, Actions
from tradebot.core.errors import ActionError, TelemetryError
from tradebot.core.time_utils import now_utc
from tradebot.telemetry.events import TelemetryEvent
from tradebot.telemetry.logging_setup import log_context, new_trace_id
from tradebot.telemetry.storage import TelemetryStorage

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-Id"

ACTIONS_KEY = web.AppKey("actions", Actions)
TELEMETRY_KEY = web.AppKey("telemetry", TelemetryStorage)


def create_rpc_app(actions: Actions, telemetry: TelemetryStorage | None = None) -> web.Application:
    """Create the aiohttp web application serving the RPC surface."""
    app = web.Application()
    app[ACTIONS_KEY] = actions
    if telemetry is not None:
        app[TELEMETRY_KEY] = telemetry

    app.router.add_post("/rpc/{name}", handle_rpc)
    app.router.add_get("/rpc", handle_list)
    app.router.add_get("/health", handle_health)
    return app


def to_jsonable(value: Any) -> Any:
    """Convert handler results (records, stats, enums) to JSON-ready values."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_jsonable(to_dict())
    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


def bind_params(handler: Callable[..., Awaitable[Any]], params: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop params the handler does not declare, unless it takes ``**kwargs``."""
    parameters = inspect.signature(handler).parameters
    if any(param.kind is inspect.Parameter.VAR_KEYWORD for param in parameters.values()):
        return dict(params)
    return {key: value for key, value in params.items() if key in parameters}


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_params(request: web.Request) -> Mapping[str, Any]:
    if not request.can_read_body:
        return {}
    raw = await request.text()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise ActionError("invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise ActionError("params must be a JSON object")
    return payload


async def handle_rpc(request: web.Request) -> web.Response:
    """POST /rpc/{name} -- dispatch to the named handler."""
    name = request.match_info["name"]
    actions = request.app[ACTIONS_KEY]
    try:
        handler = actions.resolve(name)
    except KeyError:
        return _error(404, f"unknown action: {name}")

    trace_id = request.headers.get(TRACE_HEADER) or new_trace_id()
    start = time.perf_counter()
    with log_context(trace_id=trace_id, rpc=name):
        try:
            params = await _read_params(request)
            result = await handler(**bind_params(handler, params))
            response = web.json_response({"result": to_jsonable(result)})
        except ActionError as exc:
            logger.info("RPC %s rejected: %s", name, exc)
            response = _error(400, str(exc))
        except Exception:
            logger.exception("RPC %s failed", name)
            response = _error(500, "internal error")

    response.headers[TRACE_HEADER] = trace_id
    _record_call(request, name, response.status, (time.perf_counter() - start) * 1_000.0, trace_id)
    return response


async def handle_list(request: web.Request) -> web.Response:
    """GET /rpc -- names accepted by POST /rpc/{name}."""
    return web.json_response({"result": sorted(RPC_METHODS)})


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


def _record_call(request: web.Request, name: str, status: int, duration_ms: float, trace_id: str) -> None:
    telemetry = request.app.get(TELEMETRY_KEY)
    if telemetry is None:
        return
    event = TelemetryEvent(
        timestamp=now_utc(),
        event_type="rpc_call",
        level="INFO" if status < 500 else "ERROR",
        payload={"action": name, "status": status, "duration_ms": round(duration_ms, 3)},
        context={"remote": request.remote, "trace_id": trace_id},
    )
    try:
        telemetry.append_event(event)
    except TelemetryError as exc:  # pragma: no cover - telemetry path
        logger.warning("Failed to record rpc telemetry: %s", exc)


__all__ = ["ACTIONS_KEY", "TELEMETRY_KEY", "TRACE_HEADER", "bind_params", "create_rpc_app", "to_jsonable"]
