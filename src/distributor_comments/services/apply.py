"""Apply comment pushes received from a hub to the local site.

Insert and update share upsert semantics: an entry whose origin comment is
already mirrored updates the mirror, anything else is inserted fresh. This
keeps repeated pushes of the same thread idempotent.

Replies can arrive before their parent within one batch. Such entries are
deferred and retried after a pass that applied at least one entry; a pass
without progress ends the loop and reports the leftovers as orphaned.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from distributor_comments.core.settings import settings
from distributor_comments.models import Comment, CommentMeta, CommentStatus
from distributor_comments.repositories.comment_repo import CommentRepository, CommentStoreError
from distributor_comments.schemas.comment import ApplyResult, CommentEntry
from distributor_comments.services.hooks import HookRegistry
from distributor_comments.services.identity import IdentityResolver
from distributor_comments.utils.serialization import maybe_decode

logger = logging.getLogger(__name__)


class ApplyEngine:
    """Perform local comment mutations on behalf of a hub."""

    def __init__(
        self,
        session: Session,
        hooks: HookRegistry | None = None,
        meta_denylist: Iterable[str] | None = None,
    ) -> None:
        self.session = session
        self.repository = CommentRepository(session)
        self.identity = IdentityResolver(self.repository)
        self.hooks = hooks or HookRegistry()
        if meta_denylist is None:
            meta_denylist = settings.comment_meta_denylist
        self.meta_denylist = frozenset(meta_denylist)

    # ------------------------------------------------------------------
    # insert / update
    # ------------------------------------------------------------------

    def process_comments(self, entries: Sequence[CommentEntry], post_id: int) -> ApplyResult:
        """Upsert a batch of comment entries onto a local post.

        Args:
            entries: Comments with their metadata, in any order.
            post_id: Local post receiving the mirrors.

        Returns:
            Local IDs of applied comments in ``success``; origin IDs of failed
            and orphaned comments in ``fail`` and ``orphaned``.
        """
        result = ApplyResult()
        pending = list(entries)

        while pending:
            deferred: list[CommentEntry] = []
            for entry in pending:
                parent_id = self._resolve_parent(entry, post_id)
                if parent_id is None:
                    logger.debug(
                        "Deferring comment %s until parent %s is mirrored",
                        entry.comment_data.id,
                        entry.comment_data.parent,
                    )
                    deferred.append(entry)
                    continue
                self._apply_entry(entry, post_id, parent_id, result)

            if len(deferred) == len(pending):
                for entry in deferred:
                    logger.warning(
                        "Comment %s of origin post %s has no resolvable parent %s",
                        entry.comment_data.id,
                        entry.comment_data.post_id,
                        entry.comment_data.parent,
                    )
                    result.orphaned.append(entry.comment_data.id)
                break
            pending = deferred

        logger.info(
            "Applied %d comment(s) to post %s (%d failed, %d orphaned)",
            len(result.success),
            post_id,
            len(result.fail),
            len(result.orphaned),
        )
        return result

    def _resolve_parent(self, entry: CommentEntry, post_id: int) -> int | None:
        data = entry.comment_data
        if data.parent == 0:
            return 0
        return self.identity.find_local_confirmed(data.parent, data.post_id, local_post_id=post_id)

    def _apply_entry(
        self, entry: CommentEntry, post_id: int, parent_id: int, result: ApplyResult
    ) -> None:
        data = entry.comment_data
        fields = data.to_fields()
        fields["parent_id"] = parent_id

        existing_id = self.identity.find_local_confirmed(data.id, data.post_id, local_post_id=post_id)
        if existing_id is None and not self.hooks.allow_insert(data, post_id):
            logger.info("Insert of comment %s on post %s vetoed", data.id, post_id)
            result.fail.append(data.id)
            return

        try:
            with self.session.begin_nested():
                existing = self.repository.get(existing_id) if existing_id is not None else None
                if existing is not None:
                    comment = self.repository.update(existing, **fields)
                else:
                    comment = self.repository.insert(post_id, **fields)
                self.set_comment_meta(comment.id, entry.comment_meta)
                self.identity.record_identity(comment.id, data.post_id, data.id)
        except CommentStoreError as exc:
            logger.warning("Failed to apply comment %s to post %s: %s", data.id, post_id, exc)
            result.fail.append(data.id)
            return
        except SQLAlchemyError:
            logger.error(
                "Storage error applying comment %s to post %s", data.id, post_id, exc_info=True
            )
            result.fail.append(data.id)
            return

        result.success.append(comment.id)

    def set_comment_meta(self, comment_id: int, meta: Mapping[str, Sequence[Any]]) -> None:
        """Copy a metadata mapping onto a comment.

        A value whose position already exists under its key replaces the value
        stored there; other values are appended. Serialized structures are
        decoded before they are stored.
        """
        existing: dict[str, list[CommentMeta]] = {}
        for row in self.repository.get_meta_rows(comment_id):
            existing.setdefault(row.meta_key, []).append(row)

        for key, values in meta.items():
            if key in self.meta_denylist:
                continue
            rows = existing.get(key, [])
            for position, value in enumerate(values):
                value = maybe_decode(value)
                if position < len(rows):
                    self.repository.update_meta_row(rows[position], value)
                else:
                    self.repository.add_meta(comment_id, key, value)

    # ------------------------------------------------------------------
    # ID based mutations
    # ------------------------------------------------------------------

    def trash_comments(
        self, comment_ids: Iterable[int], post_id: int, origin_post_id: int | None = None
    ) -> ApplyResult:
        return self._apply_to_ids(
            comment_ids, post_id, origin_post_id, self.repository.trash, "trash"
        )

    def untrash_comments(
        self,
        comment_ids: Iterable[int],
        post_id: int,
        comment_status: str,
        origin_post_id: int | None = None,
    ) -> ApplyResult:
        """Restore trashed mirrors and re-apply the hub's approval state.

        Mirrors that are not in the trash are reported in ``fail``.
        """
        status = CommentStatus.from_action(comment_status)

        def _untrash(comment: Comment) -> None:
            if comment.status != CommentStatus.TRASH:
                raise CommentStoreError(f"Comment {comment.id} is not in the trash")
            self.repository.untrash(comment)
            self.repository.set_status(comment, status)

        return self._apply_to_ids(comment_ids, post_id, origin_post_id, _untrash, "untrash")

    def delete_comments(
        self, comment_ids: Iterable[int], post_id: int, origin_post_id: int | None = None
    ) -> ApplyResult:
        return self._apply_to_ids(
            comment_ids, post_id, origin_post_id, self.repository.delete, "delete"
        )

    def change_comments_status(
        self,
        comment_ids: Iterable[int],
        post_id: int,
        comment_status: str,
        origin_post_id: int | None = None,
    ) -> ApplyResult:
        status = CommentStatus.from_action(comment_status)

        def _set_status(comment: Comment) -> None:
            self.repository.set_status(comment, status)

        return self._apply_to_ids(
            comment_ids, post_id, origin_post_id, _set_status, "status_change"
        )

    def spam_comments(
        self, comment_ids: Iterable[int], post_id: int, origin_post_id: int | None = None
    ) -> ApplyResult:
        return self._apply_to_ids(
            comment_ids, post_id, origin_post_id, self.repository.spam, "spam"
        )

    def unspam_comments(
        self,
        comment_ids: Iterable[int],
        post_id: int,
        comment_status: str,
        origin_post_id: int | None = None,
    ) -> ApplyResult:
        """Take mirrors out of spam and re-apply the hub's approval state.

        Mirrors that are not marked as spam are reported in ``fail``.
        """
        status = CommentStatus.from_action(comment_status)

        def _unspam(comment: Comment) -> None:
            if comment.status != CommentStatus.SPAM:
                raise CommentStoreError(f"Comment {comment.id} is not marked as spam")
            self.repository.unspam(comment)
            self.repository.set_status(comment, status)

        return self._apply_to_ids(comment_ids, post_id, origin_post_id, _unspam, "unspam")

    def _apply_to_ids(
        self,
        comment_ids: Iterable[int],
        post_id: int,
        origin_post_id: int | None,
        action: Callable[[Comment], Any],
        label: str,
    ) -> ApplyResult:
        result = ApplyResult()
        for origin_id in comment_ids:
            local_id = self.identity.find_local_confirmed(
                origin_id, origin_post_id, local_post_id=post_id
            )
            comment = self.repository.get(local_id) if local_id is not None else None
            if comment is None:
                logger.debug("No local mirror of comment %s on post %s", origin_id, post_id)
                continue
            try:
                with self.session.begin_nested():
                    action(comment)
            except CommentStoreError as exc:
                logger.warning(
                    "Failed to %s comment %s on post %s: %s", label, origin_id, post_id, exc
                )
                result.fail.append(origin_id)
                continue
            except SQLAlchemyError:
                logger.error(
                    "Storage error during %s of comment %s on post %s",
                    label,
                    origin_id,
                    post_id,
                    exc_info=True,
                )
                result.fail.append(origin_id)
                continue
            result.success.append(origin_id)

        logger.info(
            "%s: %d succeeded, %d failed on post %s",
            label,
            len(result.success),
            len(result.fail),
            post_id,
        )
        return result
