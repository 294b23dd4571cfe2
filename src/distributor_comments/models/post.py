"""SQLAlchemy model for distributable content."""

from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from distributor_comments.db.session import Base


class Post(Base):
    """A piece of content whose comment thread is kept in sync.

    On a hub a post is the original; on a destination it is the mirror and
    carries the signature of the subscription that feeds it.
    """

    __tablename__ = "post"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Shared secret of the subscription mirroring a hub post onto this one.
    subscription_signature: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Number of approved comments, maintained by the comment repository.
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
