"""SQLAlchemy model for hub to destination subscriptions."""

from sqlalchemy import BigInteger, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from distributor_comments.db.session import Base


class Subscription(Base):
    """One destination's mirror of one hub post.

    Rows are created by the distribution handshake; this package only reads them.
    """

    __tablename__ = "subscription"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Base URL of the destination API root, e.g. https://example.org/wp-json
    target_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    remote_post_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    signature: Mapped[str] = mapped_column(Text, nullable=False, default="")
