"""In-process notification bus for local content events.

The host application publishes a notification whenever a subscription is
created or a comment changes; the hub observer subscribes to these. Handlers
receive the notification and the database session the change happened in.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from distributor_comments.models import CommentStatus

logger = logging.getLogger(__name__)


class CommentChange(str, Enum):
    """Lifecycle changes of a local comment."""

    INSERTED = "inserted"
    UPDATED = "updated"
    TRASHED = "trashed"
    UNTRASHED = "untrashed"
    DELETED = "deleted"
    SPAMMED = "spammed"
    UNSPAMMED = "unspammed"
    STATUS_CHANGED = "status_changed"


@dataclass(frozen=True)
class SubscriptionCreated:
    """A destination subscribed to a post for the first time."""

    subscription_id: int
    post_id: int


@dataclass(frozen=True)
class CommentChanged:
    """A comment of a post changed.

    ``status`` is the new approval state for ``STATUS_CHANGED``. For
    ``DELETED`` the comment row may already be gone, so ``post_id`` is carried
    explicitly.
    """

    change: CommentChange
    comment_id: int
    post_id: int
    status: CommentStatus | None = None


Notification = SubscriptionCreated | CommentChanged
Handler = Callable[[Any, Session], Awaitable[Any]]


class NotificationBus:
    """Typed publish/subscribe registry."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = {}

    def subscribe(self, notification_type: type, handler: Handler) -> Handler:
        """Register ``handler`` for notifications of ``notification_type``."""
        self._handlers.setdefault(notification_type, []).append(handler)
        return handler

    def unsubscribe(self, notification_type: type, handler: Handler) -> None:
        handlers = self._handlers.get(notification_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, notification_type: type) -> list[Handler]:
        return list(self._handlers.get(notification_type, []))

    async def publish(self, notification: Notification, db: Session) -> list[Any]:
        """Run every handler registered for the notification's type, in order.

        Returns:
            The handlers' return values.
        """
        handlers = self.handlers_for(type(notification))
        if not handlers:
            logger.debug("No handlers for %s", type(notification).__name__)
        return [await handler(notification, db) for handler in handlers]


class _NotificationBusSingleton:
    """Singleton wrapper for the application's NotificationBus."""

    _instance: NotificationBus | None = None

    @classmethod
    def get_instance(cls) -> NotificationBus:
        if cls._instance is None:
            cls._instance = NotificationBus()
        return cls._instance


def get_notification_bus() -> NotificationBus:
    """Return the bus the host application publishes local comment events on."""
    return _NotificationBusSingleton.get_instance()
