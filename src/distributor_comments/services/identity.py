"""Mapping between hub comment IDs and their local mirrors.

Every mirrored comment carries two metadata keys recording where it came
from. Lookups by origin comment ID alone are ambiguous once several hub posts
are mirrored on the same site, so apply operations use the confirmed form
that also checks the origin post.
"""

from __future__ import annotations

import logging

from distributor_comments.repositories.comment_repo import CommentRepository

logger = logging.getLogger(__name__)

ORIGINAL_COMMENT_ID_KEY = "dt_original_comment_id"
ORIGINAL_POST_ID_KEY = "dt_original_post_id"


def _as_int(value: object) -> int | None:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


class IdentityResolver:
    """Resolve origin comment identities to local comment IDs."""

    def __init__(self, repository: CommentRepository) -> None:
        self.repository = repository

    def find_local(self, origin_comment_id: int, local_post_id: int | None = None) -> int | None:
        """Return the local comment mirroring ``origin_comment_id``, if any.

        Args:
            origin_comment_id: Comment ID on the hub.
            local_post_id: Restrict the search to mirrors attached to this local post.
        """
        candidates = self.repository.find_ids_by_meta(
            ORIGINAL_COMMENT_ID_KEY, int(origin_comment_id), post_id=local_post_id
        )
        return candidates[0] if candidates else None

    def find_local_confirmed(
        self,
        origin_comment_id: int,
        origin_post_id: int | None,
        local_post_id: int | None = None,
    ) -> int | None:
        """Return the local mirror of a comment only if it came from ``origin_post_id``.

        Args:
            origin_comment_id: Comment ID on the hub.
            origin_post_id: Post ID on the hub. ``None`` skips the origin post check,
                leaving only the local post scope.
            local_post_id: Restrict the search to mirrors attached to this local post.

        Returns:
            The local comment ID, or None when no mirror matches.
        """
        candidates = self.repository.find_ids_by_meta(
            ORIGINAL_COMMENT_ID_KEY, int(origin_comment_id), post_id=local_post_id
        )
        if origin_post_id is None:
            return candidates[0] if candidates else None

        for comment_id in candidates:
            stored = _as_int(self.repository.get_meta_value(comment_id, ORIGINAL_POST_ID_KEY))
            if stored == int(origin_post_id):
                return comment_id
        if candidates:
            logger.debug(
                "Comment %s is mirrored locally but not from origin post %s",
                origin_comment_id,
                origin_post_id,
            )
        return None

    def record_identity(
        self, local_comment_id: int, origin_post_id: int, origin_comment_id: int
    ) -> None:
        """Write both identity keys onto a local comment."""
        self.repository.update_meta(local_comment_id, ORIGINAL_POST_ID_KEY, int(origin_post_id))
        self.repository.update_meta(
            local_comment_id, ORIGINAL_COMMENT_ID_KEY, int(origin_comment_id)
        )
