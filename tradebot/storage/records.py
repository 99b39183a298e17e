"""Record dataclasses persisted by the JSON tables.

Each record serializes to a flat JSON object through ``to_dict`` and is
rebuilt with ``from_dict``. Timestamps are epoch milliseconds; ``updated`` is
bumped by the table on every change and drives "most recent first" listings.
"""
from __future__ import annotations

import secrets
import uuid
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional

from tradebot.core.enums import Side, TokenIssuer, TokenType, UserType
from tradebot.core.time_utils import now_ms


def new_id() -> str:
    return uuid.uuid4().hex


def new_token_id() -> str:
    return secrets.token_urlsafe(24)


@dataclass(slots=True)
class User:
    """Account row. Providers carry the id of the user who owns them in ``userid``."""

    id: str
    username: str
    type: UserType = UserType.USER
    userid: Optional[str] = None
    description: Optional[str] = None
    created: int = field(default_factory=now_ms)
    updated: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "User":
        return cls(
            id=payload["id"],
            username=payload["username"],
            type=UserType(payload.get("type", UserType.USER.value)),
            userid=payload.get("userid"),
            description=payload.get("description"),
            created=payload.get("created", 0),
            updated=payload.get("updated", 0),
        )


@dataclass(slots=True)
class Token:
    """Opaque credential. Becomes usable once validated against a user id."""

    id: str
    issuer: TokenIssuer
    type: TokenType
    userid: Optional[str] = None
    valid: bool = False
    created: int = field(default_factory=now_ms)
    updated: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["issuer"] = self.issuer.value
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Token":
        return cls(
            id=payload["id"],
            issuer=TokenIssuer(payload["issuer"]),
            type=TokenType(payload["type"]),
            userid=payload.get("userid"),
            valid=bool(payload.get("valid", False)),
            created=payload.get("created", 0),
            updated=payload.get("updated", 0),
        )


@dataclass(slots=True)
class Event:
    """Caller-supplied event. Fields other than the fixed ones live in ``data``."""

    id: str
    userid: str
    ticker: Optional[Dict[str, Any]] = None
    data: Dict[str, Any] = field(default_factory=dict)
    created: int = field(default_factory=now_ms)
    updated: int = field(default_factory=now_ms)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.data)
        payload.update(
            id=self.id,
            userid=self.userid,
            ticker=self.ticker,
            created=self.created,
            updated=self.updated,
        )
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Event":
        fixed = {"id", "userid", "ticker", "created", "updated"}
        return cls(
            id=payload["id"],
            userid=payload["userid"],
            ticker=payload.get("ticker"),
            data={key: value for key, value in payload.items() if key not in fixed},
            created=payload.get("created", 0),
            updated=payload.get("updated", 0),
        )


@dataclass(slots=True)
class Trade:
    """Closed position of a trader, priced from event tickers."""

    id: str
    userid: str
    side: Side
    entry_price: float
    exit_price: float
    entry_time: int
    exit_time: int
    pnl_pct: float
    created: int = field(default_factory=now_ms)
    updated: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["side"] = self.side.value
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Trade":
        return cls(
            id=payload["id"],
            userid=payload["userid"],
            side=Side(payload["side"]),
            entry_price=float(payload["entry_price"]),
            exit_price=float(payload["exit_price"]),
            entry_time=int(payload["entry_time"]),
            exit_time=int(payload["exit_time"]),
            pnl_pct=float(payload["pnl_pct"]),
            created=payload.get("created", 0),
            updated=payload.get("updated", 0),
        )


@dataclass(slots=True)
class Subscription:
    """Subscriber ``userid`` following provider ``providerid``; ``done`` once cancelled."""

    id: str
    userid: str
    providerid: str
    done: bool = False
    created: int = field(default_factory=now_ms)
    updated: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Subscription":
        return cls(
            id=payload["id"],
            userid=payload["userid"],
            providerid=payload["providerid"],
            done=bool(payload.get("done", False)),
            created=payload.get("created", 0),
            updated=payload.get("updated", 0),
        )


def field_names(record: Any) -> frozenset[str]:
    return frozenset(item.name for item in fields(record))


__all__ = [
    "Event",
    "Subscription",
    "Token",
    "Trade",
    "User",
    "field_names",
    "new_id",
    "new_token_id",
]
