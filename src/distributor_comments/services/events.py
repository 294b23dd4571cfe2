"""In-flight descriptions of comment changes and their delivery outcomes.

Nothing in this module is persisted: events and results live for the duration
of one notification handler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from distributor_comments.models import Subscription


class EventKind(str, Enum):
    """Comment lifecycle changes propagated to destinations.

    The value is the endpoint path suffix on the destination.
    """

    INSERT = "insert"
    UPDATE = "update"
    TRASH = "trash"
    UNTRASH = "untrash"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"
    SPAM = "spam"
    UNSPAM = "unspam"

    @property
    def carries_entries(self) -> bool:
        """Whether the payload holds full comment entries rather than IDs."""
        return self in (EventKind.INSERT, EventKind.UPDATE)

    @property
    def carries_status(self) -> bool:
        """Whether the payload holds a target approval state."""
        return self in (EventKind.UNTRASH, EventKind.UNSPAM, EventKind.STATUS_CHANGE)


@dataclass(frozen=True)
class SubscriptionTarget:
    """Snapshot of a subscription taken when an event is built."""

    subscription_id: int
    target_url: str
    remote_post_id: int
    signature: str

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> SubscriptionTarget:
        return cls(
            subscription_id=subscription.id,
            target_url=subscription.target_url,
            remote_post_id=int(subscription.remote_post_id or 0),
            signature=subscription.signature,
        )


@dataclass(frozen=True)
class PropagationEvent:
    """What happened to which comments of a post, and who must hear about it.

    Attributes:
        kind: The lifecycle change.
        post_id: Hub post the comments belong to.
        comment_ids: Hub IDs of the affected comments.
        targets: Subscriptions the event is pushed to.
        entries: Serialized ``{comment_data, comment_meta}`` records for insert/update.
        comment_status: Target approval action for untrash, unspam and status_change.
        initial: True for the full-thread push sent when a subscription is created.
    """

    kind: EventKind
    post_id: int
    comment_ids: tuple[int, ...]
    targets: tuple[SubscriptionTarget, ...]
    entries: tuple[dict[str, Any], ...] = ()
    comment_status: str | None = None
    initial: bool = False


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of pushing one event to one subscription.

    Either a response was received (``status_code`` and ``body`` set) or the
    transport failed (``error`` set).
    """

    subscription_id: int
    target_url: str
    status_code: int | None = None
    body: Any = None
    error: str | None = None

    @property
    def delivered(self) -> bool:
        """True when the destination answered at all."""
        return self.error is None

    @property
    def ok(self) -> bool:
        """True when the destination answered with a 2xx status."""
        return self.delivered and self.status_code is not None and 200 <= self.status_code < 300


@dataclass
class DispatchReport:
    """Per-subscription results of one event, in subscription order."""

    event: PropagationEvent
    results: list[DispatchResult] = field(default_factory=list)
    vetoed: bool = False

    @property
    def succeeded(self) -> list[DispatchResult]:
        return [result for result in self.results if result.ok]

    @property
    def failed(self) -> list[DispatchResult]:
        return [result for result in self.results if not result.ok]
