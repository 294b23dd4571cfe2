"""Read access to the subscriptions created by the distribution handshake."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from distributor_comments.models.subscription import Subscription

__all__ = ["SubscriptionRepository"]

logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """Resolve the destinations subscribed to a post."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_id(self, subscription_id: int) -> Subscription | None:
        return self.session.get(Subscription, subscription_id)

    def list_for_post(self, post_id: int) -> list[Subscription]:
        """Return the usable subscriptions of a post in creation order.

        Records missing a target URL, remote post ID or signature cannot be
        pushed to and are left out.
        """
        rows = self.session.execute(
            select(Subscription)
            .where(Subscription.post_id == post_id)
            .order_by(Subscription.id)
        ).scalars()

        active: list[Subscription] = []
        for subscription in rows:
            if not (
                subscription.target_url
                and subscription.remote_post_id
                and subscription.signature
            ):
                logger.debug("Skipping incomplete subscription %s", subscription.id)
                continue
            active.append(subscription)
        return active
