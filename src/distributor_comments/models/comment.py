"""SQLAlchemy models for comments and their metadata."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from distributor_comments.db.session import Base
from distributor_comments.db.time import utcnow


class CommentStatus(str, Enum):
    """Approval state of a comment, stored with its wire value."""

    APPROVED = "1"
    UNAPPROVED = "0"
    SPAM = "spam"
    TRASH = "trash"

    @classmethod
    def from_action(cls, action: str) -> "CommentStatus":
        """Map a status action (``approve``, ``hold``, ``spam``, ``trash``) to a state."""
        return _ACTION_TO_STATUS[action]

    @property
    def action(self) -> str:
        """Return the status action that leads to this state."""
        return _STATUS_TO_ACTION[self]


_ACTION_TO_STATUS = {
    "approve": CommentStatus.APPROVED,
    "hold": CommentStatus.UNAPPROVED,
    "spam": CommentStatus.SPAM,
    "trash": CommentStatus.TRASH,
}
_STATUS_TO_ACTION = {status: action for action, status in _ACTION_TO_STATUS.items()}


class Comment(Base):
    """User-generated reply attached to a post.

    A hub comment and its mirror on a destination are distinct rows linked
    only through the identity metadata of the mirror.
    """

    __tablename__ = "comment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # 0 = top-level comment.
    parent_id: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    author: Mapped[str] = mapped_column(Text, default="", nullable=False)
    author_email: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    author_url: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    author_ip: Mapped[str] = mapped_column(String(100), default="", nullable=False)

    date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    date_gmt: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    karma: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[CommentStatus] = mapped_column(
        SAEnum(
            CommentStatus,
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        default=CommentStatus.UNAPPROVED,
        nullable=False,
    )
    agent: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    type: Mapped[str] = mapped_column(String(20), default="comment", nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class CommentMeta(Base):
    """One value of a comment metadata key.

    A key may repeat; the position of a value within its key is insertion order.
    Values are stored JSON-encoded.
    """

    __tablename__ = "comment_meta"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("comment.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    meta_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    meta_value: Mapped[str | None] = mapped_column(Text, nullable=True)
