"""Data access helpers for comments and comment metadata.

The repository exposes the primitives the sync core expects from a content
platform: comment CRUD, approval-state transitions, positional metadata and
comment counting that can be deferred while a batch is applied.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from distributor_comments.core.errors import CommentSyncError
from distributor_comments.models import Comment, CommentMeta, CommentStatus, Post
from distributor_comments.utils.serialization import decode_meta_value, encode_meta_value

__all__ = ["CommentRepository", "CommentStoreError"]

logger = logging.getLogger(__name__)

# Metadata remembering the state a comment had before it was trashed or spammed.
TRASH_STATUS_KEY = "_trash_meta_status"
SPAM_STATUS_KEY = "_spam_meta_status"


class CommentStoreError(CommentSyncError):
    """Raised when a comment mutation cannot be performed."""


class CommentRepository:
    """Thin wrapper around database access for comment entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session
        self._defer_depth = 0
        self._pending_counts: set[int] = set()

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def get(self, comment_id: int) -> Comment | None:
        """Return a comment by identifier."""
        return self.session.get(Comment, comment_id)

    def list_for_post(
        self,
        post_id: int,
        statuses: Iterable[CommentStatus] | None = None,
    ) -> list[Comment]:
        """Return the comments of a post, oldest first."""
        stmt = select(Comment).where(Comment.post_id == post_id)
        if statuses is not None:
            stmt = stmt.where(Comment.status.in_(list(statuses)))
        stmt = stmt.order_by(Comment.date_gmt, Comment.id)
        return list(self.session.execute(stmt).scalars())

    def insert(self, post_id: int, *, parent_id: int = 0, **fields: Any) -> Comment:
        """Insert a new comment on a post and return the persisted instance.

        Raises:
            CommentStoreError: If the post does not exist.
        """
        if self.session.get(Post, post_id) is None:
            raise CommentStoreError(f"Post {post_id} does not exist")

        comment = Comment(post_id=post_id, parent_id=parent_id, **fields)
        self.session.add(comment)
        self.session.flush()
        self._touch(post_id)
        return comment

    def update(self, comment: Comment, **fields: Any) -> Comment:
        """Update the given columns of a comment in place."""
        for name, value in fields.items():
            if not hasattr(Comment, name) or name in {"id", "post_id"}:
                raise CommentStoreError(f"Cannot update comment column {name!r}")
            setattr(comment, name, value)
        self.session.flush()
        self._touch(comment.post_id)
        return comment

    def set_status(self, comment: Comment, status: CommentStatus) -> Comment:
        """Move a comment to the given approval state."""
        comment.status = status
        self.session.flush()
        self._touch(comment.post_id)
        return comment

    def trash(self, comment: Comment) -> Comment:
        """Move a comment to the trash, remembering its current state."""
        if comment.status == CommentStatus.TRASH:
            return comment
        self.update_meta(comment.id, TRASH_STATUS_KEY, comment.status.value)
        return self.set_status(comment, CommentStatus.TRASH)

    def untrash(self, comment: Comment) -> Comment:
        """Restore a trashed comment to the state it had before, or hold."""
        return self._restore(comment, CommentStatus.TRASH, TRASH_STATUS_KEY)

    def spam(self, comment: Comment) -> Comment:
        """Mark a comment as spam, remembering its current state."""
        if comment.status == CommentStatus.SPAM:
            return comment
        self.update_meta(comment.id, SPAM_STATUS_KEY, comment.status.value)
        return self.set_status(comment, CommentStatus.SPAM)

    def unspam(self, comment: Comment) -> Comment:
        """Take a comment out of spam, back to its previous state or hold."""
        return self._restore(comment, CommentStatus.SPAM, SPAM_STATUS_KEY)

    def delete(self, comment: Comment) -> None:
        """Permanently delete a comment and its metadata.

        Replies of the deleted comment move up to its parent.
        """
        post_id = comment.post_id
        children = self.session.execute(
            select(Comment).where(
                Comment.post_id == post_id,
                Comment.parent_id == comment.id,
            )
        ).scalars()
        for child in children:
            child.parent_id = comment.parent_id

        for row in self.get_meta_rows(comment.id):
            self.session.delete(row)
        self.session.delete(comment)
        self.session.flush()
        self._touch(post_id)

    def _restore(self, comment: Comment, current: CommentStatus, key: str) -> Comment:
        if comment.status != current:
            return comment
        previous = self.get_meta_value(comment.id, key)
        try:
            status = CommentStatus(previous) if previous is not None else CommentStatus.UNAPPROVED
        except ValueError:
            logger.debug("Ignoring unknown remembered status %r on comment %s", previous, comment.id)
            status = CommentStatus.UNAPPROVED
        if status == current:
            status = CommentStatus.UNAPPROVED
        self.delete_meta(comment.id, key)
        return self.set_status(comment, status)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_meta_rows(self, comment_id: int, key: str | None = None) -> list[CommentMeta]:
        """Return metadata rows of a comment in position order."""
        stmt = select(CommentMeta).where(CommentMeta.comment_id == comment_id)
        if key is not None:
            stmt = stmt.where(CommentMeta.meta_key == key)
        return list(self.session.execute(stmt.order_by(CommentMeta.id)).scalars())

    def get_meta(self, comment_id: int) -> dict[str, list[Any]]:
        """Return the full metadata mapping of a comment, key to ordered values."""
        meta: dict[str, list[Any]] = {}
        for row in self.get_meta_rows(comment_id):
            meta.setdefault(row.meta_key, []).append(decode_meta_value(row.meta_value))
        return meta

    def get_meta_value(self, comment_id: int, key: str) -> Any:
        """Return the first value stored under ``key``, or None."""
        rows = self.get_meta_rows(comment_id, key)
        if not rows:
            return None
        return decode_meta_value(rows[0].meta_value)

    def add_meta(self, comment_id: int, key: str, value: Any) -> CommentMeta:
        """Append a value to a metadata key."""
        row = CommentMeta(comment_id=comment_id, meta_key=key, meta_value=encode_meta_value(value))
        self.session.add(row)
        self.session.flush()
        return row

    def update_meta_row(self, row: CommentMeta, value: Any) -> CommentMeta:
        """Replace the value held by one metadata row."""
        row.meta_value = encode_meta_value(value)
        self.session.flush()
        return row

    def update_meta(self, comment_id: int, key: str, value: Any) -> CommentMeta:
        """Store ``value`` as the single value of ``key``."""
        rows = self.get_meta_rows(comment_id, key)
        if not rows:
            return self.add_meta(comment_id, key, value)
        first, *extra = rows
        for row in extra:
            self.session.delete(row)
        return self.update_meta_row(first, value)

    def delete_meta(self, comment_id: int, key: str) -> int:
        """Delete every value of a key and return how many were removed."""
        rows = self.get_meta_rows(comment_id, key)
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)

    def find_ids_by_meta(self, key: str, value: Any, post_id: int | None = None) -> list[int]:
        """Return IDs of comments holding ``value`` under ``key``, lowest first."""
        stmt = (
            select(CommentMeta.comment_id)
            .join(Comment, Comment.id == CommentMeta.comment_id)
            .where(
                CommentMeta.meta_key == key,
                CommentMeta.meta_value == encode_meta_value(value),
            )
        )
        if post_id is not None:
            stmt = stmt.where(Comment.post_id == post_id)
        ids = self.session.execute(stmt.order_by(CommentMeta.comment_id)).scalars()
        return list(dict.fromkeys(ids))

    # ------------------------------------------------------------------
    # Comment counting
    # ------------------------------------------------------------------

    def recount(self, post_id: int) -> int:
        """Recompute the approved comment count stored on a post."""
        total = self.session.execute(
            select(func.count())
            .select_from(Comment)
            .where(Comment.post_id == post_id, Comment.status == CommentStatus.APPROVED)
        ).scalar_one()
        post = self.session.get(Post, post_id)
        if post is not None:
            post.comment_count = total
            self.session.flush()
        return total

    @contextmanager
    def deferred_counting(self) -> Iterator[None]:
        """Batch comment recounts until the outermost block exits."""
        self._defer_depth += 1
        try:
            yield
        finally:
            self._defer_depth -= 1
        if self._defer_depth == 0:
            pending = sorted(self._pending_counts)
            self._pending_counts.clear()
            for post_id in pending:
                self.recount(post_id)

    @property
    def counting_deferred(self) -> bool:
        return self._defer_depth > 0

    def _touch(self, post_id: int) -> None:
        if self._defer_depth:
            self._pending_counts.add(post_id)
        else:
            self.recount(post_id)
