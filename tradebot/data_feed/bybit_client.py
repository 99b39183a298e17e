"""Bybit market-data client used for the ``getTicker`` RPC.

Only the public ``GET /v5/market/tickers`` endpoint is needed: handlers fetch
the latest price for the configured instrument and either return it directly
or stamp it onto a consumed event so the trader stats engine can price
position changes.

Latency is recorded for every REST call as ``(response_time - request_time)``
in milliseconds and logged at debug level.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Optional

import httpx

from tradebot.config.models import BybitConfig, BybitMode
from tradebot.core.errors import MarketDataError
from tradebot.core.types import Symbol

from .ticker import Ticker, parse_ticker_response

LOGGER = logging.getLogger(__name__)

DEFAULT_REST_ENDPOINTS: Mapping[BybitMode, str] = {
    BybitMode.LIVE: "https://api.bybit.com",
    BybitMode.DEMO: "https://api-testnet.bybit.com",
}


class BybitApiError(MarketDataError):
    """Raised when Bybit returns ``retCode`` != 0."""

    def __init__(self, code: int, message: str, payload: Mapping[str, Any]):
        super().__init__(f"Bybit error {code}: {message}")
        self.code = code
        self.payload = payload


class BybitClient:
    """Asynchronous REST client for Bybit public market data.

    Parameters
    ----------
    config:
        :class:`tradebot.config.models.BybitConfig` with mode, default symbol
        and retry settings.
    session:
        Optional pre-configured :class:`httpx.AsyncClient` (e.g. for tests).

    Notes
    -----
    Retries use exponential backoff ``backoff_base * 2 ** attempt``. Temporary
    HTTP/network issues are logged as warnings and re-raised after the final
    attempt.
    """

    def __init__(self, config: BybitConfig, session: httpx.AsyncClient | None = None) -> None:
        self.mode = config.mode
        self.category = config.category
        self.symbol = Symbol(config.symbol)
        self._rest_base = config.rest_endpoint or DEFAULT_REST_ENDPOINTS[self.mode]
        self._client = session or httpx.AsyncClient(base_url=self._rest_base, timeout=config.timeout_sec)
        self._max_retries = config.max_retries
        self._backoff_base = config.backoff_base_sec

    async def close(self) -> None:
        """Close the underlying HTTP client."""

        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> tuple[Mapping[str, Any], float]:
        """Perform an HTTP request with retry/backoff and return the JSON payload.

        Returns a tuple ``(payload, latency_ms)`` where ``payload`` is the full
        Bybit envelope (``retCode``, ``result``, ``time``).
        """

        url_path = path if path.startswith("/") else f"/{path}"
        for attempt in range(1, self._max_retries + 1):
            start = time.perf_counter()
            try:
                response = await self._client.request(method, url_path, params=dict(params or {}))
                latency_ms = (time.perf_counter() - start) * 1_000.0
                response.raise_for_status()
                payload = response.json()
                ret_code = payload.get("retCode", -1)
                if ret_code != 0:
                    raise BybitApiError(ret_code, payload.get("retMsg", ""), payload)
                LOGGER.debug("Bybit %s %s ok", method, path, extra={"latency_ms": round(latency_ms, 2)})
                return payload, latency_ms
            except (httpx.HTTPError, BybitApiError) as exc:
                LOGGER.warning("Bybit %s %s failed (attempt %s/%s): %s", method, path, attempt, self._max_retries, exc)
                if attempt == self._max_retries:
                    raise
                await asyncio.sleep(self._backoff_base * (2 ** (attempt - 1)))
        raise MarketDataError(f"Bybit {method} {path} was not attempted")

    async def get_ticker(self, symbol: Symbol | str | None = None) -> Ticker:
        """Return the latest ticker for ``symbol`` (defaults to the configured one).

        Wrapper over ``GET /v5/market/tickers``.
        """

        target = Symbol(symbol or self.symbol)
        params = {"category": self.category, "symbol": target}
        payload, _ = await self._request("GET", "/v5/market/tickers", params=params)
        timestamp_ms = int(payload.get("time") or time.time() * 1000)
        return parse_ticker_response(target, payload.get("result"), timestamp_ms)


__all__ = ["BybitApiError", "BybitClient", "DEFAULT_REST_ENDPOINTS"]
