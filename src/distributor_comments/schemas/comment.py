"""Comment-related Pydantic schemas."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from distributor_comments.models import Comment, CommentStatus

StatusAction = Literal["approve", "hold", "spam", "trash"]


class CommentData(BaseModel):
    """A comment record as it travels between sites.

    Field aliases are the keys used on the wire.
    """

    id: int = Field(..., alias="comment_ID")
    post_id: int = Field(..., alias="comment_post_ID")
    parent: int = Field(0, ge=0, alias="comment_parent")
    author: str = Field("", alias="comment_author")
    author_email: str = Field("", alias="comment_author_email")
    author_url: str = Field("", alias="comment_author_url")
    author_ip: str = Field("", alias="comment_author_IP")
    date: datetime | None = Field(None, alias="comment_date")
    date_gmt: datetime | None = Field(None, alias="comment_date_gmt")
    content: str = Field("", alias="comment_content")
    karma: int = Field(0, alias="comment_karma")
    approved: CommentStatus = Field(CommentStatus.APPROVED, alias="comment_approved")
    agent: str = Field("", alias="comment_agent")
    type: str = Field("comment", alias="comment_type")
    user_id: int = 0

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("approved", mode="before")
    @classmethod
    def _coerce_numeric_status(cls, value: object) -> object:
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, int):
            return str(value)
        return value

    @classmethod
    def from_comment(cls, comment: Comment) -> CommentData:
        """Build the wire record for a stored comment."""
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            parent=comment.parent_id,
            author=comment.author,
            author_email=comment.author_email,
            author_url=comment.author_url,
            author_ip=comment.author_ip,
            date=comment.date,
            date_gmt=comment.date_gmt,
            content=comment.content,
            karma=comment.karma,
            approved=comment.status,
            agent=comment.agent,
            type=comment.type,
            user_id=comment.user_id,
        )

    def to_fields(self) -> dict[str, Any]:
        """Return the column values a destination copies onto its mirror."""
        fields: dict[str, Any] = {
            "author": self.author,
            "author_email": self.author_email,
            "author_url": self.author_url,
            "author_ip": self.author_ip,
            "content": self.content,
            "karma": self.karma,
            "status": self.approved,
            "agent": self.agent,
            "type": self.type or "comment",
            "user_id": 0,
        }
        if self.date is not None:
            fields["date"] = self.date
        if self.date_gmt is not None:
            fields["date_gmt"] = self.date_gmt
        return fields


class CommentEntry(BaseModel):
    """A comment together with its full metadata mapping."""

    comment_data: CommentData
    comment_meta: dict[str, list[Any]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @field_validator("comment_meta", mode="before")
    @classmethod
    def _wrap_single_values(cls, value: object) -> object:
        if value is None or (isinstance(value, list) and not value):
            return {}
        if isinstance(value, Mapping):
            return {
                key: list(values) if isinstance(values, list | tuple) else [values]
                for key, values in value.items()
            }
        return value

    @classmethod
    def from_comment(
        cls, comment: Comment, meta: Mapping[str, Sequence[Any]]
    ) -> CommentEntry:
        """Build an entry for a stored comment and its metadata."""
        return cls(
            comment_data=CommentData.from_comment(comment),
            comment_meta={key: list(values) for key, values in meta.items()},
        )

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-compatible representation pushed to destinations."""
        return self.model_dump(mode="json", by_alias=True)


class _SignedRequest(BaseModel):
    """Fields shared by every inbound push."""

    post_id: int = Field(..., description="Target post ID as known on this site")
    signature: str = Field(..., description="Subscription signature for the post")

    model_config = ConfigDict(extra="forbid")


class InsertCommentsRequest(_SignedRequest):
    """Body of ``/insert``: the full comment thread of a post."""

    comment_data: list[CommentEntry]


class UpdateCommentsRequest(_SignedRequest):
    """Body of ``/update``; a single entry is accepted and normalized to a list."""

    comment_data: list[CommentEntry]

    @field_validator("comment_data", mode="before")
    @classmethod
    def _normalize_single_entry(cls, value: object) -> object:
        if isinstance(value, Mapping):
            return [value]
        return value


class CommentIdsRequest(_SignedRequest):
    """Body of the endpoints that reference comments by origin ID only."""

    comment_data: list[int]
    origin_post_id: int | None = Field(
        None,
        description="Post ID on the hub; narrows the identity lookup when present",
    )

    @field_validator("comment_data", mode="before")
    @classmethod
    def _normalize_single_id(cls, value: object) -> object:
        if isinstance(value, int | str) and not isinstance(value, bool):
            return [value]
        return value


class CommentStatusRequest(CommentIdsRequest):
    """Body of ``/untrash``, ``/unspam`` and ``/status_change``."""

    comment_status: StatusAction


class ApplyResult(BaseModel):
    """Outcome of applying one push on a destination."""

    success: list[int] = Field(default_factory=list)
    fail: list[int] = Field(default_factory=list)
    orphaned: list[int] = Field(default_factory=list)
