"""Trader position and stats models."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence

from tradebot.core.enums import Side
from tradebot.storage.records import Trade


@dataclass(slots=True)
class OpenPosition:
    """Position a trader currently holds, opened by an event."""

    side: Side
    entry_price: float
    entry_time: int
    eventid: str

    def pnl_pct(self, price: float) -> float:
        """Sign-adjusted percentage move from entry to ``price``."""

        move = (price - self.entry_price) / self.entry_price * 100
        return move if self.side is Side.LONG else -move


@dataclass(slots=True)
class TraderStats:
    """Aggregated performance of one trader's closed trades."""

    trades_count: int
    wins: int
    losses: int
    total_pnl_pct: float
    win_rate: Optional[float] = None
    best_pnl_pct: Optional[float] = None
    worst_pnl_pct: Optional[float] = None
    position: Optional[Side] = None
    position_entry_price: Optional[float] = None
    updated: Optional[int] = None

    @classmethod
    def from_trades(
        cls,
        trades: Sequence[Trade],
        *,
        position: OpenPosition | None = None,
        updated: int | None = None,
    ) -> "TraderStats":
        pnls = [trade.pnl_pct for trade in trades]
        trades_count = len(pnls)
        wins = sum(1 for pnl in pnls if pnl > 0)
        losses = sum(1 for pnl in pnls if pnl < 0)
        return cls(
            trades_count=trades_count,
            wins=wins,
            losses=losses,
            total_pnl_pct=sum(pnls),
            win_rate=(wins / trades_count) * 100 if trades_count else None,
            best_pnl_pct=max(pnls) if pnls else None,
            worst_pnl_pct=min(pnls) if pnls else None,
            position=position.side if position else None,
            position_entry_price=position.entry_price if position else None,
            updated=updated,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["position"] = self.position.value if self.position else None
        return payload


__all__ = ["OpenPosition", "TraderStats"]
