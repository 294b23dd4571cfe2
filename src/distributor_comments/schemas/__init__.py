"""
Pydantic schemas for the comments wire protocol.

These schemas define the request bodies pushed from a hub and the result
maps returned by a destination.
"""

from .comment import (
    ApplyResult,
    CommentData,
    CommentEntry,
    CommentIdsRequest,
    CommentStatusRequest,
    InsertCommentsRequest,
    StatusAction,
    UpdateCommentsRequest,
)

__all__ = [
    "ApplyResult",
    "CommentData", "CommentEntry",
    "CommentIdsRequest", "CommentStatusRequest",
    "InsertCommentsRequest", "UpdateCommentsRequest",
    "StatusAction",
]
