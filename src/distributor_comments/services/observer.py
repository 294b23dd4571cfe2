"""Hub side handlers turning local comment changes into pushes."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.orm import Session

from distributor_comments.models import Comment, CommentStatus
from distributor_comments.repositories import CommentRepository, SubscriptionRepository
from distributor_comments.schemas.comment import CommentEntry
from distributor_comments.services.dispatcher import CommentDispatcher
from distributor_comments.services.events import (
    DispatchReport,
    EventKind,
    PropagationEvent,
    SubscriptionTarget,
)
from distributor_comments.services.notifications import (
    CommentChange,
    CommentChanged,
    NotificationBus,
    SubscriptionCreated,
)

logger = logging.getLogger(__name__)

# Comments that are part of a thread as far as destinations are concerned.
THREAD_STATUSES = (CommentStatus.APPROVED, CommentStatus.UNAPPROVED)

_ID_EVENTS = {
    CommentChange.TRASHED: EventKind.TRASH,
    CommentChange.DELETED: EventKind.DELETE,
    CommentChange.SPAMMED: EventKind.SPAM,
}
_RESTORE_EVENTS = {
    CommentChange.UNTRASHED: EventKind.UNTRASH,
    CommentChange.UNSPAMMED: EventKind.UNSPAM,
}


def _targets(db: Session, post_id: int) -> tuple[SubscriptionTarget, ...]:
    return tuple(
        SubscriptionTarget.from_subscription(subscription)
        for subscription in SubscriptionRepository(db).list_for_post(post_id)
    )


def _entries(repository: CommentRepository, comments: Sequence[Comment]) -> tuple[dict, ...]:
    return tuple(
        CommentEntry.from_comment(comment, repository.get_meta(comment.id)).to_wire()
        for comment in comments
    )


def build_initial_event(db: Session, subscription_id: int) -> PropagationEvent | None:
    """Build the full-thread insert for a newly created subscription.

    Returns None when the subscription is unusable or the post has no comments.
    """
    subscription = SubscriptionRepository(db).get_by_id(subscription_id)
    if subscription is None:
        logger.warning("Subscription %s not found; skipping initial push", subscription_id)
        return None
    target = SubscriptionTarget.from_subscription(subscription)
    if not (target.target_url and target.remote_post_id and target.signature):
        return None

    repository = CommentRepository(db)
    comments = repository.list_for_post(subscription.post_id, THREAD_STATUSES)
    if not comments:
        return None
    return PropagationEvent(
        kind=EventKind.INSERT,
        post_id=subscription.post_id,
        comment_ids=tuple(comment.id for comment in comments),
        targets=(target,),
        entries=_entries(repository, comments),
        initial=True,
    )


def build_entries_event(db: Session, kind: EventKind, comment: Comment) -> PropagationEvent | None:
    """Build an insert or update event for one comment, for every subscription."""
    targets = _targets(db, comment.post_id)
    if not targets:
        return None
    repository = CommentRepository(db)
    return PropagationEvent(
        kind=kind,
        post_id=comment.post_id,
        comment_ids=(comment.id,),
        targets=targets,
        entries=_entries(repository, [comment]),
    )


def build_ids_event(
    db: Session,
    kind: EventKind,
    post_id: int,
    comment_ids: Sequence[int],
    comment_status: str | None = None,
) -> PropagationEvent | None:
    """Build an event that references comments by ID only."""
    targets = _targets(db, post_id)
    if not targets:
        return None
    return PropagationEvent(
        kind=kind,
        post_id=post_id,
        comment_ids=tuple(comment_ids),
        targets=targets,
        comment_status=comment_status,
    )


class CommentObserver:
    """React to local notifications by pushing the matching event."""

    def __init__(self, dispatcher: CommentDispatcher) -> None:
        self.dispatcher = dispatcher

    def register(self, bus: NotificationBus) -> None:
        """Subscribe the observer's handlers on a notification bus."""
        bus.subscribe(SubscriptionCreated, self.on_subscription_created)
        bus.subscribe(CommentChanged, self.on_comment_changed)

    async def on_subscription_created(
        self, notification: SubscriptionCreated, db: Session
    ) -> DispatchReport | None:
        event = build_initial_event(db, notification.subscription_id)
        if event is None:
            return None
        return await self._dispatch(event)

    async def on_comment_changed(
        self, notification: CommentChanged, db: Session
    ) -> list[DispatchReport]:
        """Push the event(s) matching a comment change.

        Returns:
            One report per event dispatched; empty when the change is ignored.
        """
        change = notification.change
        events: list[PropagationEvent | None] = []

        if change in (CommentChange.INSERTED, CommentChange.UPDATED):
            comment = CommentRepository(db).get(notification.comment_id)
            if comment is None or comment.status != CommentStatus.APPROVED:
                logger.debug("Ignoring %s of unapproved comment %s", change.value, notification.comment_id)
                return []
            kind = EventKind.INSERT if change is CommentChange.INSERTED else EventKind.UPDATE
            events.append(build_entries_event(db, kind, comment))

        elif change in _ID_EVENTS:
            events.append(
                build_ids_event(db, _ID_EVENTS[change], notification.post_id, [notification.comment_id])
            )

        elif change in _RESTORE_EVENTS:
            comment = CommentRepository(db).get(notification.comment_id)
            status = comment.status if comment is not None else CommentStatus.UNAPPROVED
            if status not in THREAD_STATUSES:
                status = CommentStatus.UNAPPROVED
            events.append(
                build_ids_event(
                    db,
                    _RESTORE_EVENTS[change],
                    notification.post_id,
                    [notification.comment_id],
                    comment_status=status.action,
                )
            )

        elif change is CommentChange.STATUS_CHANGED:
            if notification.status not in THREAD_STATUSES:
                return []
            if notification.status == CommentStatus.APPROVED:
                # Destinations never received the comment while it was held.
                comment = CommentRepository(db).get(notification.comment_id)
                if comment is not None:
                    events.append(build_entries_event(db, EventKind.UPDATE, comment))
            events.append(
                build_ids_event(
                    db,
                    EventKind.STATUS_CHANGE,
                    notification.post_id,
                    [notification.comment_id],
                    comment_status=notification.status.action,
                )
            )

        return [await self._dispatch(event) for event in events if event is not None]

    async def _dispatch(self, event: PropagationEvent) -> DispatchReport:
        report = await self.dispatcher.dispatch(event)
        for result in report.results:
            if result.ok:
                logger.info(
                    "%s for post %s delivered to subscription %s",
                    event.kind.value,
                    event.post_id,
                    result.subscription_id,
                )
            else:
                logger.warning(
                    "%s for post %s not applied by subscription %s: %s",
                    event.kind.value,
                    event.post_id,
                    result.subscription_id,
                    result.error or result.status_code,
                )
        return report
