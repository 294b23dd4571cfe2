# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import datetime, timedelta
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")

from distributor_comments.api.v1.dependencies import get_hooks
from distributor_comments.db.session import Base
from distributor_comments.db.session import get_db as app_get_session
from distributor_comments.main import app as fastapi_app
from distributor_comments.models import Comment, CommentStatus, Post, Subscription
from distributor_comments.repositories import CommentRepository
from distributor_comments.schemas.comment import CommentData, CommentEntry
from distributor_comments.services.hooks import HookRegistry

TEST_DB_URL = "sqlite://"
SIGNATURE = "s3cr3t-signature"

_ORIGIN_COMMENT_IDS = count(1000)
_BASE_DATE = datetime(2024, 5, 1, 12, 0, 0)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def hooks() -> HookRegistry:
    """Provide a fresh hook registry per test."""
    return HookRegistry()


@pytest.fixture(autouse=True)
def override_dependencies(app: FastAPI, db_session: Session, hooks: HookRegistry) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_hooks] = lambda: hooks
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_hooks, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def hub_post(db_session: Session) -> Post:
    """A post originating on this site."""
    post = Post(title="Hub post")
    db_session.add(post)
    db_session.flush()
    return post


@pytest.fixture()
def mirror_post(db_session: Session) -> Post:
    """A post mirrored from a hub, carrying the subscription signature."""
    post = Post(title="Mirrored post", subscription_signature=SIGNATURE)
    db_session.add(post)
    db_session.flush()
    return post


@pytest.fixture()
def make_subscription(db_session: Session) -> Callable[..., Subscription]:
    def _make(post: Post, **overrides: Any) -> Subscription:
        values: dict[str, Any] = {
            "post_id": post.id,
            "target_url": "https://destination.test/wp-json",
            "remote_post_id": 50,
            "signature": SIGNATURE,
        }
        values.update(overrides)
        subscription = Subscription(**values)
        db_session.add(subscription)
        db_session.flush()
        return subscription

    return _make


@pytest.fixture()
def make_comment(db_session: Session) -> Callable[..., Comment]:
    """Insert a comment on a post through the repository."""
    repository = CommentRepository(db_session)

    def _make(post: Post, **fields: Any) -> Comment:
        fields.setdefault("author", "Ada")
        fields.setdefault("content", "First!")
        fields.setdefault("status", CommentStatus.APPROVED)
        return repository.insert(post.id, **fields)

    return _make


def build_entry(
    origin_id: int | None = None,
    *,
    origin_post_id: int = 10,
    parent: int = 0,
    content: str = "Hello from the hub",
    approved: str = "1",
    meta: dict[str, list[Any]] | None = None,
) -> CommentEntry:
    """Build a comment entry as a hub would push it."""
    origin_id = origin_id if origin_id is not None else next(_ORIGIN_COMMENT_IDS)
    data = CommentData.model_validate(
        {
            "comment_ID": origin_id,
            "comment_post_ID": origin_post_id,
            "comment_parent": parent,
            "comment_author": "Grace",
            "comment_author_email": "grace@example.org",
            "comment_author_url": "https://example.org",
            "comment_author_IP": "192.0.2.10",
            "comment_date": (_BASE_DATE + timedelta(minutes=origin_id % 60)).isoformat(),
            "comment_date_gmt": (_BASE_DATE + timedelta(minutes=origin_id % 60)).isoformat(),
            "comment_content": content,
            "comment_karma": 0,
            "comment_approved": approved,
            "comment_agent": "pytest",
            "comment_type": "comment",
            "user_id": 7,
        }
    )
    return CommentEntry(comment_data=data, comment_meta=meta or {})
