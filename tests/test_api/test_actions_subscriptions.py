from __future__ import annotations

import pytest

from tradebot.api.actions import DEFAULT_PROVIDER_DESCRIPTION, Actions
from tradebot.core.enums import TokenIssuer, TokenType, UserType
from tradebot.core.errors import ActionError, NotFoundError


@pytest.fixture
async def provider(actions: Actions, alice):
    return await actions.create_provider(token=alice["token"].id, username="Alpha-Signals")


async def test_create_provider_should_issue_provider_token(actions: Actions, alice, provider) -> None:
    record, token = provider["provider"], provider["token"]
    assert record.type is UserType.PROVIDER
    assert record.userid == alice["user"].id
    assert record.username == "alpha-signals"
    assert record.description == DEFAULT_PROVIDER_DESCRIPTION
    assert token.issuer is TokenIssuer.USER
    assert token.type is TokenType.PROVIDER
    assert token.userid == record.id
    assert token.valid is True


async def test_create_provider_should_validate_input(actions: Actions, alice) -> None:
    with pytest.raises(ActionError, match="username required"):
        await actions.create_provider(token=alice["token"].id)
    with pytest.raises(ActionError, match="token required"):
        await actions.create_provider(username="beta")
    custom = await actions.create_provider(token=alice["token"].id, username="beta", description="Swing trades")
    assert custom["provider"].description == "Swing trades"


async def test_list_providers_should_include_stats(actions: Actions, alice, bob, provider) -> None:
    other = await actions.create_provider(token=bob["token"].id, username="bob-signals")
    listed = await actions.list_providers()
    assert {item["id"] for item in listed} == {provider["provider"].id, other["provider"].id}
    assert all(item["stats"]["trades_count"] == 0 for item in listed)
    assert all(item["type"] == "provider" for item in listed)

    mine = await actions.list_my_providers(token=alice["token"].id)
    assert [item["id"] for item in mine] == [provider["provider"].id]


async def test_create_subscription_should_enforce_rules(actions: Actions, alice, bob, provider) -> None:
    providerid = provider["provider"].id
    with pytest.raises(ActionError, match="providerid required"):
        await actions.create_subscription(token=bob["token"].id)
    with pytest.raises(ActionError, match="You cannot subscribe to this provider."):
        await actions.create_subscription(token=alice["token"].id, providerid=providerid)
    with pytest.raises(ActionError, match="You may only subscribe to provider accounts."):
        await actions.create_subscription(token=bob["token"].id, providerid=alice["user"].id)
    with pytest.raises(NotFoundError):
        await actions.create_subscription(token=bob["token"].id, providerid="missing")

    sub = await actions.create_subscription(token=bob["token"].id, providerid=providerid)
    assert sub.userid == bob["user"].id
    assert sub.providerid == providerid
    assert sub.done is False
    with pytest.raises(ActionError, match="You have already subscribed to this provider."):
        await actions.create_subscription(token=bob["token"].id, providerid=providerid)


async def test_is_subscribed_and_list_my_subscriptions(actions: Actions, bob, provider, fake_ticker) -> None:
    providerid = provider["provider"].id
    token = bob["token"].id
    assert await actions.is_subscribed(token=token, providerid=providerid) is False
    sub = await actions.create_subscription(token=token, providerid=providerid)
    assert await actions.is_subscribed(token=token, providerid=providerid) is True

    await actions.consume_event(token=provider["token"].id, side="long")
    fake_ticker.price = 105.0
    await actions.consume_event(token=provider["token"].id, side="close")

    listed = await actions.list_my_subscriptions(token=token)
    assert [item["id"] for item in listed] == [sub.id]
    assert listed[0]["stats"]["trades_count"] == 1
    assert listed[0]["stats"]["total_pnl_pct"] == pytest.approx(5.0)


async def test_cancel_subscription_should_check_ownership(actions: Actions, alice, bob, provider) -> None:
    providerid = provider["provider"].id
    sub = await actions.create_subscription(token=bob["token"].id, providerid=providerid)

    with pytest.raises(ActionError, match="subscriptionid required"):
        await actions.cancel_subscription(token=bob["token"].id)
    with pytest.raises(ActionError, match="You do not own this subscription."):
        await actions.cancel_subscription(token=alice["token"].id, subscriptionid=sub.id)

    cancelled = await actions.cancel_subscription(token=bob["token"].id, subscriptionid=sub.id)
    assert cancelled.done is True
    assert await actions.is_subscribed(token=bob["token"].id, providerid=providerid) is False
    again = await actions.create_subscription(token=bob["token"].id, providerid=providerid)
    assert again.id != sub.id


async def test_transfer_subscription_should_reassign_owner(actions: Actions, alice, bob, provider) -> None:
    carol = await actions.register_username(username="carol")
    sub = await actions.create_subscription(token=bob["token"].id, providerid=provider["provider"].id)

    with pytest.raises(ActionError, match="recipientid required"):
        await actions.transfer_subscription(token=bob["token"].id, subscriptionid=sub.id)
    with pytest.raises(ActionError, match="token required"):
        await actions.transfer_subscription(subscriptionid=sub.id, recipientid=carol["user"].id)
    with pytest.raises(NotFoundError):
        await actions.transfer_subscription(token=bob["token"].id, subscriptionid=sub.id, recipientid="nobody")
    with pytest.raises(ActionError, match="You do not own this subscription."):
        await actions.transfer_subscription(
            token=alice["token"].id, subscriptionid=sub.id, recipientid=carol["user"].id
        )

    moved = await actions.transfer_subscription(
        token=bob["token"].id, subscriptionid=sub.id, recipientid=carol["user"].id
    )
    assert moved.userid == carol["user"].id
    assert await actions.is_subscribed(token=carol["token"].id, providerid=provider["provider"].id) is True
    assert await actions.is_subscribed(token=bob["token"].id, providerid=provider["provider"].id) is False
