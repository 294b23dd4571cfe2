"""Destination endpoints receiving comment pushes from a hub.

Every endpoint authenticates the push with the subscription signature of the
target post; there is no other permission check. Comment counts are
recomputed once after the whole push is applied.
"""

import logging
from collections.abc import Callable

from fastapi import APIRouter
from sqlalchemy.orm import Session

from distributor_comments.api.v1.dependencies import HooksDep, SessionDep, validate_request
from distributor_comments.core.settings import settings
from distributor_comments.schemas.comment import (
    ApplyResult,
    CommentIdsRequest,
    CommentStatusRequest,
    InsertCommentsRequest,
    UpdateCommentsRequest,
)
from distributor_comments.services.apply import ApplyEngine
from distributor_comments.services.events import EventKind
from distributor_comments.services.hooks import HookRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix=settings.comments_route, tags=["distributor-comments"])


def _apply(
    db: Session,
    hooks: HookRegistry,
    post_id: int,
    kind: EventKind,
    operation: Callable[[ApplyEngine], ApplyResult],
) -> ApplyResult:
    engine = ApplyEngine(db, hooks)
    with engine.repository.deferred_counting():
        result = operation(engine)
    hooks.comments_processed(post_id, kind)
    db.commit()
    logger.info(
        "Processed %s push for post %s: %d succeeded, %d failed",
        kind.value,
        post_id,
        len(result.success),
        len(result.fail),
    )
    return result


@router.post("/insert", response_model=ApplyResult)
async def insert_comments(
    body: InsertCommentsRequest, db: SessionDep, hooks: HooksDep
) -> ApplyResult:
    """Mirror the full comment thread of a post pushed on initial distribution."""
    validate_request(db, body.post_id, body.signature)
    return _apply(
        db, hooks, body.post_id, EventKind.INSERT,
        lambda engine: engine.process_comments(body.comment_data, body.post_id),
    )


@router.post("/update", response_model=ApplyResult)
async def update_comments(
    body: UpdateCommentsRequest, db: SessionDep, hooks: HooksDep
) -> ApplyResult:
    """Update mirrors, inserting comments this site has not seen yet."""
    validate_request(db, body.post_id, body.signature)
    return _apply(
        db, hooks, body.post_id, EventKind.UPDATE,
        lambda engine: engine.process_comments(body.comment_data, body.post_id),
    )


@router.post("/delete", response_model=ApplyResult)
async def delete_comments(
    body: CommentIdsRequest, db: SessionDep, hooks: HooksDep
) -> ApplyResult:
    """Permanently delete mirrors of comments deleted on the hub."""
    validate_request(db, body.post_id, body.signature)
    return _apply(
        db, hooks, body.post_id, EventKind.DELETE,
        lambda engine: engine.delete_comments(
            body.comment_data, body.post_id, body.origin_post_id
        ),
    )


@router.post("/trash", response_model=ApplyResult)
async def trash_comments(
    body: CommentIdsRequest, db: SessionDep, hooks: HooksDep
) -> ApplyResult:
    validate_request(db, body.post_id, body.signature)
    return _apply(
        db, hooks, body.post_id, EventKind.TRASH,
        lambda engine: engine.trash_comments(
            body.comment_data, body.post_id, body.origin_post_id
        ),
    )


@router.post("/untrash", response_model=ApplyResult)
async def untrash_comments(
    body: CommentStatusRequest, db: SessionDep, hooks: HooksDep
) -> ApplyResult:
    """Restore trashed mirrors to the approval state given by the hub."""
    validate_request(db, body.post_id, body.signature)
    return _apply(
        db, hooks, body.post_id, EventKind.UNTRASH,
        lambda engine: engine.untrash_comments(
            body.comment_data, body.post_id, body.comment_status, body.origin_post_id
        ),
    )


@router.post("/status_change", response_model=ApplyResult)
async def change_comments_status(
    body: CommentStatusRequest, db: SessionDep, hooks: HooksDep
) -> ApplyResult:
    """Approve or hold mirrors."""
    validate_request(db, body.post_id, body.signature)
    return _apply(
        db, hooks, body.post_id, EventKind.STATUS_CHANGE,
        lambda engine: engine.change_comments_status(
            body.comment_data, body.post_id, body.comment_status, body.origin_post_id
        ),
    )


@router.post("/spam", response_model=ApplyResult)
async def spam_comments(
    body: CommentIdsRequest, db: SessionDep, hooks: HooksDep
) -> ApplyResult:
    validate_request(db, body.post_id, body.signature)
    return _apply(
        db, hooks, body.post_id, EventKind.SPAM,
        lambda engine: engine.spam_comments(
            body.comment_data, body.post_id, body.origin_post_id
        ),
    )


@router.post("/unspam", response_model=ApplyResult)
async def unspam_comments(
    body: CommentStatusRequest, db: SessionDep, hooks: HooksDep
) -> ApplyResult:
    """Take mirrors out of spam and re-apply the approval state given by the hub."""
    validate_request(db, body.post_id, body.signature)
    return _apply(
        db, hooks, body.post_id, EventKind.UNSPAM,
        lambda engine: engine.unspam_comments(
            body.comment_data, body.post_id, body.comment_status, body.origin_post_id
        ),
    )
