"""Unit tests for the ORM models defined in distributor_comments.models.

These tests verify basic mapping correctness: table names, the status enum
round trip and the defaults a freshly inserted comment receives.
"""

import pytest
from sqlalchemy import inspect

from distributor_comments.db.session import make_engine
from distributor_comments.models import Comment, CommentMeta, CommentStatus, Post, Subscription


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert Post.__tablename__ == "post"
    assert Subscription.__tablename__ == "subscription"
    assert Comment.__tablename__ == "comment"
    assert CommentMeta.__tablename__ == "comment_meta"


def test_meta_key_is_indexed():
    indexed = {
        column.name
        for index in CommentMeta.__table__.indexes
        for column in index.columns
    }
    assert "meta_key" in indexed


@pytest.mark.parametrize(
    ("action", "status"),
    [
        ("approve", CommentStatus.APPROVED),
        ("hold", CommentStatus.UNAPPROVED),
        ("spam", CommentStatus.SPAM),
        ("trash", CommentStatus.TRASH),
    ],
)
def test_status_actions_round_trip(action, status):
    assert CommentStatus.from_action(action) is status
    assert status.action == action


def test_unknown_status_action_raises():
    with pytest.raises(KeyError):
        CommentStatus.from_action("publish")


def test_comment_defaults(db_session, hub_post):
    comment = Comment(post_id=hub_post.id, content="hi")
    db_session.add(comment)
    db_session.flush()
    db_session.refresh(comment)

    assert comment.parent_id == 0
    assert comment.status == CommentStatus.UNAPPROVED
    assert comment.type == "comment"
    assert comment.date_gmt is not None
    assert inspect(comment).persistent


def test_sqlite_engines_enforce_foreign_keys():
    engine = make_engine("sqlite://")
    try:
        with engine.connect() as connection:
            assert connection.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
    finally:
        engine.dispose()
