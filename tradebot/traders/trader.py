"""Per-user position tracker turning events into closed trades.

An event drives the trader through its ``side`` field:

* ``long`` / ``buy`` opens (or flips into) a long position;
* ``short`` / ``sell`` opens (or flips into) a short position;
* ``close`` / ``flat`` / ``exit`` closes whatever is open.

Positions are priced at the event's explicit ``price`` or, failing that, the
``last_price`` of the ticker stamped onto the event. Events carrying no side
or no usable price leave the trader untouched.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

from tradebot.core.enums import Side
from tradebot.storage.records import Event, Trade, new_id

from .models import OpenPosition, TraderStats

LOGGER = logging.getLogger(__name__)

_CLOSE = "close"
SIDE_ALIASES: Mapping[str, str] = {
    "long": Side.LONG.value,
    "buy": Side.LONG.value,
    "short": Side.SHORT.value,
    "sell": Side.SHORT.value,
    "close": _CLOSE,
    "flat": _CLOSE,
    "exit": _CLOSE,
}


def event_price(event: Event) -> Optional[float]:
    raw: Any = event.get("price")
    if raw in (None, "") and event.ticker:
        raw = event.ticker.get("last_price")
    try:
        price = float(raw)
    except (TypeError, ValueError):
        return None
    return price if price > 0 else None


class Trader:
    """Tracks one open position and the closed trades of a single user id."""

    def __init__(self, userid: str) -> None:
        self.userid = userid
        self.position: OpenPosition | None = None
        self.trades: List[Trade] = []
        self.events_seen = 0
        self.updated: int | None = None

    def ingest(self, event: Event) -> Trade | None:
        """Apply ``event``; return the trade it closed, if any."""

        self.events_seen += 1
        self.updated = event.created
        raw_side = event.get("side")
        target = SIDE_ALIASES.get(str(raw_side).lower()) if raw_side is not None else None
        if target is None:
            return None
        price = event_price(event)
        if price is None:
            LOGGER.debug("Event without price ignored", extra={"userid": self.userid, "eventid": event.id})
            return None
        if self.position is not None and self.position.side.value == target:
            return None

        closed = self._close(self.position, price, event.created) if self.position is not None else None
        if target != _CLOSE:
            self.position = OpenPosition(
                side=Side(target),
                entry_price=price,
                entry_time=event.created,
                eventid=event.id,
            )
        return closed

    def _close(self, position: OpenPosition, price: float, when: int) -> Trade:
        trade = Trade(
            id=new_id(),
            userid=self.userid,
            side=position.side,
            entry_price=position.entry_price,
            exit_price=price,
            entry_time=position.entry_time,
            exit_time=when,
            pnl_pct=position.pnl_pct(price),
        )
        self.trades.append(trade)
        self.position = None
        return trade

    def restore(self, trades: Iterable[Trade], events: Iterable[Event]) -> None:
        """Rebuild from stored trades plus the position left open by ``events``.

        Closed trades come from ``trades`` as they were recorded. Events older
        than the last exit only advance the counters; newer ones are ingested to
        recover the open position and any trade they close is discarded.
        """

        history = sorted(trades, key=lambda trade: trade.exit_time)
        since = history[-1].exit_time if history else None
        self.position = None
        for event in events:
            if since is not None and event.created < since:
                self.events_seen += 1
                self.updated = event.created
                continue
            self.ingest(event)
        self.trades = history

    def get_stats(self) -> TraderStats:
        return TraderStats.from_trades(self.trades, position=self.position, updated=self.updated)


__all__ = ["SIDE_ALIASES", "Trader", "event_price"]
