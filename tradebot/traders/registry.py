"""Registry of :class:`Trader` instances keyed by user id."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from tradebot.storage.records import Event, Trade
from tradebot.storage.tables import TradeTable

from .trader import Trader

LOGGER = logging.getLogger(__name__)


class TraderRegistry:
    """Owns every trader and persists the trades they close.

    Traders live in memory only; :meth:`replay` rebuilds them from the stored
    trades and events when the service starts.
    """

    def __init__(self, trades: TradeTable | None = None) -> None:
        self._trades = trades
        self._traders: Dict[str, Trader] = {}

    def get(self, userid: str) -> Optional[Trader]:
        return self._traders.get(userid)

    def get_or_create(self, userid: str) -> Trader:
        trader = self._traders.get(userid)
        if trader is None:
            trader = Trader(userid)
            self._traders[userid] = trader
        return trader

    def keys(self) -> List[str]:
        return list(self._traders)

    async def process_event(self, event: Event) -> Trade | None:
        """Feed ``event`` to its trader and store any trade it closes."""

        trade = self.get_or_create(event.userid).ingest(event)
        if trade is not None:
            LOGGER.info(
                "Trade closed",
                extra={"userid": trade.userid, "side": trade.side.value, "pnl_pct": round(trade.pnl_pct, 4)},
            )
            if self._trades is not None:
                await self._trades.record(trade)
        return trade

    def replay(self, events: Iterable[Event], trades: Iterable[Trade] = ()) -> int:
        """Rebuild trader state at start-up from the stored events and trades.

        Recorded trades are taken as they are; events only recover the open
        positions. Nothing is persisted. Returns the number of events read.
        """

        events_by_user: Dict[str, List[Event]] = defaultdict(list)
        trades_by_user: Dict[str, List[Trade]] = defaultdict(list)
        ordered = sorted(events, key=lambda item: item.created)
        for event in ordered:
            events_by_user[event.userid].append(event)
        for trade in trades:
            trades_by_user[trade.userid].append(trade)

        userids = list(events_by_user) + [userid for userid in trades_by_user if userid not in events_by_user]
        for userid in userids:
            self.get_or_create(userid).restore(trades_by_user[userid], events_by_user[userid])
        LOGGER.info(
            "Replayed events into traders",
            extra={"events": len(ordered), "trades": sum(map(len, trades_by_user.values())), "traders": len(self._traders)},
        )
        return len(ordered)


__all__ = ["TraderRegistry"]
