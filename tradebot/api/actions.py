"""Request handlers behind the RPC surface.

Every handler follows the same short path: check the caller token, fetch and
compare ownership where a record belongs to someone, call one collaborator
method and return its result. Validation failures raise
:class:`tradebot.core.errors.ActionError` with a message meant for the caller;
nothing is retried or recovered here.

Handlers are exposed under their RPC names through :data:`RPC_METHODS`
(``changeMyUsername`` -> :meth:`Actions.change_my_username`, ...).
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Protocol

from tradebot.core.enums import SortOrder, TokenIssuer, TokenType, UserType
from tradebot.core.errors import require
from tradebot.core.time_utils import now_ms
from tradebot.data_feed.ticker import Ticker
from tradebot.storage import Tables
from tradebot.storage.records import Event, Subscription, Token, Trade, User
from tradebot.traders.models import TraderStats
from tradebot.traders.registry import TraderRegistry

LOGGER = logging.getLogger(__name__)

DEFAULT_PROVIDER_DESCRIPTION = "User Generated Provider Key."
TOKEN_INVALID = "token is no longer valid"
EVENT_TOKEN_INVALID = "Your token has expired or is invalid."

RPC_METHODS: Mapping[str, str] = {
    "echo": "echo",
    "ping": "ping",
    "me": "me",
    "changeMyUsername": "change_my_username",
    "getTicker": "get_ticker",
    "registerUsername": "register_username",
    "listUsers": "list_users",
    "listTraders": "list_traders",
    "consumeEvent": "consume_event",
    "listMyTrades": "list_my_trades",
    "listMyEvents": "list_my_events",
    "listMyProviderEvents": "list_my_provider_events",
    "listMyProviderTrades": "list_my_provider_trades",
    "listMyProviderStats": "list_my_provider_stats",
    "getMyStats": "get_my_stats",
    "listMyTokens": "list_my_tokens",
    "listProviders": "list_providers",
    "listMyProviders": "list_my_providers",
    "createProvider": "create_provider",
    "createSubscription": "create_subscription",
    "listMySubscriptions": "list_my_subscriptions",
    "isSubscribed": "is_subscribed",
    "cancelSubscription": "cancel_subscription",
    "transferSubscription": "transfer_subscription",
}


class TickerSource(Protocol):
    """Anything able to return the current exchange ticker."""

    async def get_ticker(self) -> Ticker: ...


class Actions:
    """Facade over the tables, the trader registry and the ticker source."""

    def __init__(self, tables: Tables, traders: TraderRegistry, bybit: TickerSource) -> None:
        self.users = tables.users
        self.tokens = tables.tokens
        self.events = tables.events
        self.trades = tables.trades
        self.subscriptions = tables.subscriptions
        self.traders = traders
        self.bybit = bybit

    def resolve(self, name: str) -> Callable[..., Awaitable[Any]]:
        """Return the bound handler for RPC ``name`` or raise ``KeyError``."""

        return getattr(self, RPC_METHODS[name])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _session(self, token: str | None, invalid_message: str = TOKEN_INVALID) -> Token:
        """Resolve ``token`` to a validated token record."""

        require(token, "token required")
        session = await self.tokens.find(str(token))
        require(session is not None, "token not found")
        require(session.valid and session.userid, invalid_message)
        return session

    async def _my_provider(self, session: Token, providerid: str | None) -> User:
        require(providerid, "providerid required")
        provider = await self.users.get(providerid)
        require(provider.userid == session.userid, "provider does not belong to you.")
        return provider

    async def _my_subscription(self, session: Token, subscriptionid: str) -> Subscription:
        sub = await self.subscriptions.get(subscriptionid)
        require(sub.userid == session.userid, "You do not own this subscription.")
        return sub

    def merge_trader_stats(
        self,
        records: Iterable[Any],
        key: Callable[[Any], str] = lambda record: record.id,
    ) -> List[Dict[str, Any]]:
        """Attach each record's trader stats and order by ``updated``, newest first.

        A failing stats lookup is logged and the record is returned without
        ``stats``.
        """

        merged: List[Dict[str, Any]] = []
        for record in records:
            item = record.to_dict()
            try:
                item["stats"] = self.traders.get_or_create(key(record)).get_stats().to_dict()
            except Exception:
                LOGGER.exception("Failed to merge trader stats", extra={"record_id": record.id})
            merged.append(item)
        merged.sort(key=lambda item: item.get("updated") or 0)
        merged.reverse()
        return merged

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------
    async def echo(self, /, **payload: Any) -> Dict[str, Any]:
        return payload

    async def ping(self) -> str:
        return "ok"

    async def get_ticker(self) -> Ticker:
        return await self.bybit.get_ticker()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    async def me(self, token: str | None = None) -> User:
        session = await self._session(token)
        return await self.users.get(session.userid)

    async def change_my_username(self, username: str | None = None, token: str | None = None) -> User:
        session = await self._session(token)
        require(username, "username required")
        username = str(username).strip().lower()
        require(username, "username required")
        taken = await self.users.get_by("username", username)
        require(not taken, "Another user already claimed this username.")
        return await self.users.update(session.userid, {"username": username})

    async def register_username(self, username: str | None = None) -> Dict[str, Any]:
        """Create a user account and hand back its first validated token."""

        user = await self.users.create(username)
        token = await self.tokens.generate(TokenIssuer.TRADEBOT, TokenType.USER)
        token = await self.tokens.validate(token.id, user.id)
        LOGGER.info("User registered", extra={"userid": user.id, "username": user.username})
        return {"user": user, "token": token}

    async def list_users(self) -> List[User]:
        return await self.users.list_sorted()

    async def list_my_tokens(self, token: str | None = None) -> List[Token]:
        session = await self._session(token)
        return await self.tokens.list_user_sorted(session.userid)

    # ------------------------------------------------------------------
    # Events, trades and stats
    # ------------------------------------------------------------------
    async def list_traders(self) -> List[str]:
        return self.traders.keys()

    async def consume_event(self, /, token: str | None = None, **params: Any) -> Event:
        """Store a caller event stamped with the current ticker and feed the traders."""

        session = await self._session(token, EVENT_TOKEN_INVALID)
        ticker = await self.bybit.get_ticker()
        fields = dict(params)
        fields.update(userid=session.userid, ticker=ticker.to_dict(), created=now_ms())
        event = await self.events.upsert(**fields)
        await self.traders.process_event(event)
        return event

    async def list_my_trades(self, token: str | None = None) -> List[Trade]:
        session = await self._session(token)
        return await self.trades.list_user_sorted(session.userid)

    async def list_my_events(self, token: str | None = None) -> List[Event]:
        session = await self._session(token)
        return await self.events.list_user_sorted(session.userid)

    async def list_my_provider_events(self, token: str | None = None, providerid: str | None = None) -> List[Event]:
        session = await self._session(token)
        provider = await self._my_provider(session, providerid)
        return await self.events.list_user_sorted(provider.id)

    async def list_my_provider_trades(self, token: str | None = None, providerid: str | None = None) -> List[Trade]:
        session = await self._session(token)
        provider = await self._my_provider(session, providerid)
        return await self.trades.list_user_sorted(provider.id, SortOrder.DESC)

    async def list_my_provider_stats(self, token: str | None = None) -> List[Dict[str, Any]]:
        session = await self._session(token)
        owned = await self.users.get_by("userid", session.userid)
        return self.merge_trader_stats(owned)

    async def get_my_stats(self, token: str | None = None) -> TraderStats:
        session = await self._session(token)
        trader = self.traders.get(session.userid)
        require(trader, "trader not found, you have no events recorded.")
        return trader.get_stats()

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------
    async def list_providers(self) -> List[Dict[str, Any]]:
        providers = await self.users.get_by("type", UserType.PROVIDER)
        return self.merge_trader_stats(providers)

    async def list_my_providers(self, token: str | None = None) -> List[Dict[str, Any]]:
        session = await self._session(token)
        providers = await self.users.get_by("userid_type", [session.userid, UserType.PROVIDER])
        return self.merge_trader_stats(providers)

    async def create_provider(
        self,
        username: str | None = None,
        token: str | None = None,
        description: str = DEFAULT_PROVIDER_DESCRIPTION,
    ) -> Dict[str, Any]:
        """Create a provider account owned by the caller plus its API token."""

        require(username, "username required")
        session = await self._session(token)
        provider = await self.users.create(
            username,
            UserType.PROVIDER,
            description=description,
            userid=session.userid,
        )
        provider_token = await self.tokens.generate(TokenIssuer.USER, TokenType.PROVIDER)
        provider_token = await self.tokens.validate(provider_token.id, provider.id)
        LOGGER.info("Provider created", extra={"userid": session.userid, "providerid": provider.id})
        return {"provider": provider, "token": provider_token}

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    async def create_subscription(self, providerid: str | None = None, token: str | None = None) -> Subscription:
        require(providerid, "providerid required")
        session = await self._session(token)
        provider = await self.users.get(providerid)
        require(provider.userid != session.userid, "You cannot subscribe to this provider.")
        require(provider.type is UserType.PROVIDER, "You may only subscribe to provider accounts.")
        subbed = await self.subscriptions.is_subscribed(session.userid, providerid)
        require(not subbed, "You have already subscribed to this provider.")
        return await self.subscriptions.create(session.userid, providerid)

    async def list_my_subscriptions(self, token: str | None = None) -> List[Dict[str, Any]]:
        session = await self._session(token)
        subs = await self.subscriptions.get_by("userid", session.userid)
        return self.merge_trader_stats(subs, key=lambda sub: sub.providerid)

    async def is_subscribed(self, providerid: str | None = None, token: str | None = None) -> bool:
        session = await self._session(token)
        return await self.subscriptions.is_subscribed(session.userid, providerid)

    async def cancel_subscription(self, subscriptionid: str | None = None, token: str | None = None) -> Subscription:
        require(subscriptionid, "subscriptionid required")
        session = await self._session(token)
        await self._my_subscription(session, subscriptionid)
        return await self.subscriptions.update(subscriptionid, {"done": True})

    async def transfer_subscription(
        self,
        subscriptionid: str | None = None,
        token: str | None = None,
        recipientid: str | None = None,
    ) -> Subscription:
        require(subscriptionid, "subscriptionid required")
        require(token, "token required")
        require(recipientid, "recipientid required")

        recipient = await self.users.get(recipientid)
        LOGGER.info("Transferring subscription", extra={"subscriptionid": subscriptionid, "recipientid": recipient.id})

        session = await self._session(token)
        await self._my_subscription(session, subscriptionid)
        return await self.subscriptions.update(subscriptionid, {"userid": recipient.id})


__all__ = ["Actions", "RPC_METHODS", "TickerSource"]
