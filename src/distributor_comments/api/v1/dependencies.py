"""Shared API dependencies for request authentication."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from distributor_comments.db.session import get_db
from distributor_comments.models import Post
from distributor_comments.repositories import PostRepository
from distributor_comments.services.hooks import HookRegistry, get_hook_registry

INVALID_POST_ID = "rest_post_invalid_id"
INVALID_SUBSCRIPTION = "rest_post_invalid_subscription"

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_hooks() -> HookRegistry:
    """Return the hook registry consulted while applying pushes."""
    return get_hook_registry()


HooksDep = Annotated[HookRegistry, Depends(get_hooks)]


def validate_request(db: Session, post_id: int, signature: str) -> Post:
    """Authenticate a push against the subscription signature stored on a post.

    Args:
        db: Database session
        post_id: Target post ID on this site
        signature: Signature supplied by the hub

    Returns:
        The target post

    Raises:
        HTTPException: 404 if the post does not exist, 400 if the signature
            does not match the one stored for the post
    """
    post = PostRepository(db).get_by_id(post_id)
    if post is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": INVALID_POST_ID, "message": "Invalid post ID."},
        )

    stored = post.subscription_signature
    if not stored or not secrets.compare_digest(stored.encode(), signature.encode()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": INVALID_SUBSCRIPTION, "message": "No subscription for that post"},
        )
    return post
