"""Tests for the in-process notification bus."""

import pytest

from distributor_comments.services.notifications import (
    CommentChange,
    CommentChanged,
    NotificationBus,
    SubscriptionCreated,
    get_notification_bus,
)


@pytest.mark.asyncio
async def test_publish_runs_handlers_of_matching_type_in_order() -> None:
    bus = NotificationBus()
    calls: list[str] = []

    async def first(notification, db):
        calls.append("first")
        return 1

    async def second(notification, db):
        calls.append("second")
        return 2

    async def other(notification, db):
        calls.append("other")

    bus.subscribe(CommentChanged, first)
    bus.subscribe(CommentChanged, second)
    bus.subscribe(SubscriptionCreated, other)

    results = await bus.publish(CommentChanged(CommentChange.INSERTED, 1, 2), db=None)

    assert results == [1, 2]
    assert calls == ["first", "second"]


@pytest.mark.asyncio
async def test_publish_without_handlers_returns_empty() -> None:
    bus = NotificationBus()

    assert await bus.publish(SubscriptionCreated(subscription_id=1, post_id=2), db=None) == []


@pytest.mark.asyncio
async def test_unsubscribe_removes_handler() -> None:
    bus = NotificationBus()

    async def handler(notification, db):
        return "called"

    bus.subscribe(SubscriptionCreated, handler)
    bus.unsubscribe(SubscriptionCreated, handler)
    bus.unsubscribe(SubscriptionCreated, handler)

    assert bus.handlers_for(SubscriptionCreated) == []


@pytest.mark.asyncio
async def test_handler_errors_propagate() -> None:
    bus = NotificationBus()

    async def broken(notification, db):
        raise RuntimeError("boom")

    bus.subscribe(CommentChanged, broken)

    with pytest.raises(RuntimeError):
        await bus.publish(CommentChanged(CommentChange.DELETED, 1, 2), db=None)


def test_singleton_bus_is_shared() -> None:
    assert get_notification_bus() is get_notification_bus()
