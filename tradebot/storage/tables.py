"""JSON-file tables backing the users, tokens, events, trades and subscriptions.

Each table keeps its rows in memory and rewrites ``<data_dir>/<name>.json`` after
every mutation. Writes are serialized with an :class:`asyncio.Lock`; reads
return the live record objects. Passing ``data_dir=None`` keeps the table in
memory only, which is what the tests do.
"""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Generic, Iterable, List, Mapping, Optional, Protocol, TypeVar

from tradebot.core.enums import SortOrder, TokenIssuer, TokenType, UserType
from tradebot.core.errors import ActionError, NotFoundError, StorageError, require
from tradebot.core.time_utils import now_ms

from .records import Event, Subscription, Token, Trade, User, field_names, new_id, new_token_id

LOGGER = logging.getLogger(__name__)

# Fields callers may never change through ``update``.
_IMMUTABLE_FIELDS = frozenset({"id", "created"})


class _Record(Protocol):
    id: str
    created: int
    updated: int

    def to_dict(self) -> Dict[str, Any]: ...


R = TypeVar("R", bound=_Record)


class JsonTable(Generic[R]):
    """Async CRUD over one JSON file.

    Subclasses set ``name`` (file stem), ``record_cls`` and ``indexes``: a map
    from index name to a function extracting the indexed value. Compound
    indexes return tuples and are queried with lists, e.g.
    ``get_by("userid_type", [userid, "provider"])``.
    """

    name: ClassVar[str]
    record_cls: ClassVar[type]
    indexes: ClassVar[Mapping[str, Callable[[Any], Any]]] = {}

    def __init__(self, data_dir: Path | str | None = None) -> None:
        self._path: Path | None = None
        if data_dir is not None:
            directory = Path(data_dir)
            directory.mkdir(parents=True, exist_ok=True)
            self._path = directory / f"{self.name}.json"
        self._records: Dict[str, R] = {}
        self._lock = asyncio.Lock()
        self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to read {self._path.name}: {exc}") from exc
        for entry in payload.get("records", []):
            record = self.record_cls.from_dict(entry)
            self._records[record.id] = record
        LOGGER.debug("Loaded table", extra={"table": self.name, "records": len(self._records)})

    def _flush(self) -> None:
        if self._path is None:
            return
        data = {"records": [record.to_dict() for record in self._records.values()]}
        tmp_path = self._path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:  # pragma: no cover - filesystem errors are rare
            raise StorageError(f"Failed to write {self._path.name}: {exc}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get(self, record_id: str) -> R:
        """Return the record or raise :class:`NotFoundError`."""

        record = self._records.get(record_id) if record_id else None
        if record is None:
            raise NotFoundError(f"{self.name} not found: {record_id}")
        return record

    async def find(self, record_id: str) -> Optional[R]:
        return self._records.get(record_id)

    async def get_by(self, index: str, value: Any) -> List[R]:
        """Return every record whose ``index`` equals ``value``."""

        try:
            key = self.indexes[index]
        except KeyError as exc:
            raise StorageError(f"{self.name} has no index {index!r}") from exc
        if isinstance(value, list):
            value = tuple(value)
        return [record for record in self._records.values() if key(record) == value]

    async def all(self) -> List[R]:
        return list(self._records.values())

    async def list_sorted(self, field: str = "created", order: SortOrder | str = SortOrder.ASC) -> List[R]:
        return _sort(self._records.values(), field, order)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def insert(self, record: R) -> R:
        async with self._lock:
            return self._insert_locked(record)

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> R:
        """Apply ``changes`` to an existing record and bump ``updated``."""

        async with self._lock:
            record = await self.get(record_id)
            self._apply(record, changes)
            record.updated = now_ms()
            self._flush()
            return record

    def _insert_locked(self, record: R) -> R:
        if record.id in self._records:
            raise StorageError(f"Duplicate id in {self.name}: {record.id}")
        self._records[record.id] = record
        self._flush()
        return record

    def _apply(self, record: R, changes: Mapping[str, Any]) -> None:
        allowed = field_names(record) - _IMMUTABLE_FIELDS
        for key, value in changes.items():
            if key not in allowed:
                raise StorageError(f"Unknown {self.name} field: {key}")
            setattr(record, key, value)


def _sort(records: Iterable[R], field: str, order: SortOrder | str) -> List[R]:
    # Ties keep insertion order ascending and reverse with it for DESC.
    ordered = sorted(records, key=lambda record: getattr(record, field))
    if SortOrder(order) is SortOrder.DESC:
        ordered.reverse()
    return ordered


class UserTable(JsonTable[User]):
    name = "users"
    record_cls = User
    indexes = {
        "username": lambda user: user.username,
        "userid": lambda user: user.userid,
        "type": lambda user: user.type,
        "userid_type": lambda user: (user.userid, user.type),
    }

    async def create(
        self,
        username: str,
        type: UserType | str = UserType.USER,
        *,
        description: str | None = None,
        userid: str | None = None,
    ) -> User:
        """Create a user (or provider) with a unique lower-case username."""

        require(username, "username required")
        username = str(username).strip().lower()
        require(username, "username required")
        async with self._lock:
            taken = await self.get_by("username", username)
            require(not taken, "Another user already claimed this username.")
            user = User(
                id=new_id(),
                username=username,
                type=UserType(type),
                userid=userid,
                description=description,
            )
            return self._insert_locked(user)


class TokenTable(JsonTable[Token]):
    name = "tokens"
    record_cls = Token
    indexes = {"userid": lambda token: token.userid}

    async def generate(self, issuer: TokenIssuer | str, type: TokenType | str) -> Token:
        """Issue a fresh token; it stays invalid until :meth:`validate`."""

        token = Token(id=new_token_id(), issuer=TokenIssuer(issuer), type=TokenType(type))
        return await self.insert(token)

    async def validate(self, token_id: str, userid: str) -> Token:
        """Bind the token to ``userid`` and mark it usable."""

        return await self.update(token_id, {"userid": userid, "valid": True})

    async def list_user_sorted(self, userid: str, order: SortOrder | str = SortOrder.ASC) -> List[Token]:
        return _sort(await self.get_by("userid", userid), "created", order)


class EventTable(JsonTable[Event]):
    name = "events"
    record_cls = Event
    indexes = {"userid": lambda event: event.userid}

    async def upsert(self, /, **fields: Any) -> Event:
        """Merge into the event named by ``id`` or create a new one."""

        event_id = fields.pop("id", None)
        async with self._lock:
            existing = self._records.get(event_id) if event_id else None
            if existing is not None:
                if fields.get("userid") not in (None, existing.userid):
                    raise ActionError("event does not belong to you.")
                self._apply(existing, fields)
                existing.updated = now_ms()
                self._flush()
                return existing
            require(fields.get("userid"), "userid required")
            event = Event(id=event_id or new_id(), userid=fields.pop("userid"))
            created = fields.pop("created", None)
            if created is not None:
                event.created = event.updated = int(created)
            self._apply(event, fields)
            return self._insert_locked(event)

    def _apply(self, record: Event, changes: Mapping[str, Any]) -> None:
        for key, value in changes.items():
            if key in _IMMUTABLE_FIELDS or key in {"userid", "updated"}:
                continue
            if key == "ticker":
                record.ticker = value
            else:
                record.data[key] = value

    async def list_user_sorted(self, userid: str, order: SortOrder | str = SortOrder.ASC) -> List[Event]:
        return _sort(await self.get_by("userid", userid), "created", order)


class TradeTable(JsonTable[Trade]):
    name = "trades"
    record_cls = Trade
    indexes = {"userid": lambda trade: trade.userid}

    async def record(self, trade: Trade) -> Trade:
        return await self.insert(trade)

    async def list_user_sorted(self, userid: str, order: SortOrder | str = SortOrder.ASC) -> List[Trade]:
        return _sort(await self.get_by("userid", userid), "exit_time", order)


class SubscriptionTable(JsonTable[Subscription]):
    name = "subscriptions"
    record_cls = Subscription
    indexes = {
        "userid": lambda sub: sub.userid,
        "providerid": lambda sub: sub.providerid,
    }

    async def create(self, userid: str, providerid: str) -> Subscription:
        return await self.insert(Subscription(id=new_id(), userid=userid, providerid=providerid))

    async def is_subscribed(self, userid: str, providerid: str) -> bool:
        """True when ``userid`` holds an active subscription to ``providerid``."""

        return any(sub.providerid == providerid and not sub.done for sub in await self.get_by("userid", userid))


__all__ = [
    "EventTable",
    "JsonTable",
    "SubscriptionTable",
    "TokenTable",
    "TradeTable",
    "UserTable",
]
