from __future__ import annotations

from typing import Any, Dict

import pytest

from tradebot.api.actions import Actions
from tradebot.core.types import Symbol
from tradebot.data_feed.ticker import Ticker
from tradebot.storage import Tables, open_tables
from tradebot.storage.records import Event
from tradebot.traders.registry import TraderRegistry


class FakeTickerSource:
    def __init__(self, price: float = 100.0) -> None:
        self.price = price
        self.calls = 0

    async def get_ticker(self) -> Ticker:
        self.calls += 1
        return Ticker(
            symbol=Symbol("BTCUSDT"),
            last_price=self.price,
            bid_price=self.price - 0.5,
            ask_price=self.price + 0.5,
            mark_price=self.price,
            timestamp_ms=1_700_000_000_000,
        )


@pytest.fixture
def fake_ticker() -> FakeTickerSource:
    return FakeTickerSource()


@pytest.fixture
def tables() -> Tables:
    return open_tables(None)


@pytest.fixture
def traders(tables: Tables) -> TraderRegistry:
    return TraderRegistry(tables.trades)


@pytest.fixture
def actions(tables: Tables, traders: TraderRegistry, fake_ticker: FakeTickerSource) -> Actions:
    return Actions(tables, traders, fake_ticker)


@pytest.fixture
async def alice(actions: Actions) -> Dict[str, Any]:
    return await actions.register_username(username="Alice")


@pytest.fixture
async def bob(actions: Actions) -> Dict[str, Any]:
    return await actions.register_username(username="bob")


@pytest.fixture
def event_factory():
    counter = {"value": 0}

    def _factory(userid: str = "user-1", side: str | None = "long", price: float | None = 100.0, **extra: Any) -> Event:
        counter["value"] += 1
        data: Dict[str, Any] = dict(extra)
        if side is not None:
            data["side"] = side
        ticker = {"last_price": price} if price is not None else None
        return Event(
            id=f"event-{counter['value']}",
            userid=userid,
            ticker=ticker,
            data=data,
            created=1_700_000_000_000 + counter["value"] * 60_000,
        )

    return _factory
