"""Ticker snapshot returned by ``getTicker`` and stamped onto events."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping

from tradebot.core.errors import MarketDataError
from tradebot.core.types import Symbol


@dataclass(slots=True)
class Ticker:
    """Latest prices for one instrument from ``/v5/market/tickers``."""

    symbol: Symbol
    last_price: float
    bid_price: float
    ask_price: float
    mark_price: float
    timestamp_ms: int

    @property
    def mid_price(self) -> float:
        if self.bid_price and self.ask_price:
            return (self.bid_price + self.ask_price) / 2
        return self.last_price

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mid_price"] = self.mid_price
        return data


def _as_float(value: Any) -> float:
    # Bybit sends prices as strings and empty strings for missing quotes.
    if value in (None, ""):
        return 0.0
    return float(value)


def parse_ticker_response(symbol: Symbol, payload: Mapping[str, Any] | None, timestamp_ms: int) -> Ticker:
    """Convert a ``/v5/market/tickers`` result into a :class:`Ticker`."""

    entries = (payload or {}).get("list") or []
    for item in entries:
        # Structure: {'symbol': 'BTCUSDT', 'lastPrice': '...', 'bid1Price': '...', 'ask1Price': '...', 'markPrice': '...'}
        if item.get("symbol") != symbol:
            continue
        return Ticker(
            symbol=Symbol(item["symbol"]),
            last_price=_as_float(item.get("lastPrice")),
            bid_price=_as_float(item.get("bid1Price")),
            ask_price=_as_float(item.get("ask1Price")),
            mark_price=_as_float(item.get("markPrice")),
            timestamp_ms=int(timestamp_ms),
        )
    raise MarketDataError(f"Ticker for {symbol} missing from response")


__all__ = ["Ticker", "parse_ticker_response"]
