"""SQLAlchemy models for the comments add-on."""

from .comment import Comment, CommentMeta, CommentStatus
from .post import Post
from .subscription import Subscription

__all__ = [
    "Comment", "CommentMeta", "CommentStatus",
    "Post",
    "Subscription",
]
