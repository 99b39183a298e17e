"""JSON-file tables for users, tokens, events, trades and subscriptions."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .records import Event, Subscription, Token, Trade, User
from .tables import EventTable, JsonTable, SubscriptionTable, TokenTable, TradeTable, UserTable


@dataclass(slots=True)
class Tables:
    """Every table the request handlers delegate to."""

    users: UserTable
    tokens: TokenTable
    events: EventTable
    trades: TradeTable
    subscriptions: SubscriptionTable


def open_tables(data_dir: Path | str | None) -> Tables:
    """Open (or create) all tables under ``data_dir``; ``None`` keeps them in memory."""

    return Tables(
        users=UserTable(data_dir),
        tokens=TokenTable(data_dir),
        events=EventTable(data_dir),
        trades=TradeTable(data_dir),
        subscriptions=SubscriptionTable(data_dir),
    )


__all__ = [
    "Event",
    "EventTable",
    "JsonTable",
    "Subscription",
    "SubscriptionTable",
    "Tables",
    "Token",
    "TokenTable",
    "Trade",
    "TradeTable",
    "User",
    "UserTable",
    "open_tables",
]
