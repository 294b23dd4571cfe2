"""Data access layer standing in for the host platform's storage."""

from .comment_repo import CommentRepository, CommentStoreError
from .post_repo import PostRepository
from .subscription_repo import SubscriptionRepository

__all__ = [
    "CommentRepository", "CommentStoreError",
    "PostRepository",
    "SubscriptionRepository",
]
