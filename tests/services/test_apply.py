"""Tests for applying hub pushes on a destination."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from distributor_comments.core.errors import CommentSyncError
from distributor_comments.models import CommentStatus
from distributor_comments.repositories import CommentRepository, CommentStoreError
from distributor_comments.services.apply import ApplyEngine
from distributor_comments.services.hooks import HookRegistry
from distributor_comments.services.identity import ORIGINAL_COMMENT_ID_KEY, IdentityResolver
from tests.conftest import build_entry


@pytest.fixture()
def apply_engine(db_session: Session, hooks: HookRegistry) -> ApplyEngine:
    return ApplyEngine(db_session, hooks=hooks, meta_denylist=())


def _local_id(db_session: Session, origin_id: int, origin_post_id: int = 10) -> int | None:
    return IdentityResolver(CommentRepository(db_session)).find_local_confirmed(
        origin_id, origin_post_id
    )


def test_insert_creates_mirror_with_identity(apply_engine: ApplyEngine, db_session: Session, mirror_post) -> None:
    entry = build_entry(5, content="Hello")

    result = apply_engine.process_comments([entry], mirror_post.id)

    assert len(result.success) == 1
    assert result.fail == []
    assert result.orphaned == []
    comment = CommentRepository(db_session).get(result.success[0])
    assert comment is not None
    assert comment.post_id == mirror_post.id
    assert comment.content == "Hello"
    assert comment.author == "Grace"
    assert comment.parent_id == 0
    assert comment.status == CommentStatus.APPROVED
    assert comment.user_id == 0
    assert _local_id(db_session, 5) == comment.id


def test_repeated_insert_is_idempotent(apply_engine: ApplyEngine, db_session: Session, mirror_post) -> None:
    entry = build_entry(5)

    first = apply_engine.process_comments([entry], mirror_post.id)
    second = apply_engine.process_comments([entry], mirror_post.id)

    assert first.success == second.success
    assert len(CommentRepository(db_session).list_for_post(mirror_post.id)) == 1


def test_update_rewrites_existing_mirror(apply_engine: ApplyEngine, db_session: Session, mirror_post) -> None:
    apply_engine.process_comments([build_entry(5, content="Before")], mirror_post.id)

    result = apply_engine.process_comments([build_entry(5, content="After")], mirror_post.id)

    comments = CommentRepository(db_session).list_for_post(mirror_post.id)
    assert [comment.content for comment in comments] == ["After"]
    assert result.success == [comments[0].id]


def test_same_origin_id_from_another_post_gets_its_own_mirror(
    apply_engine: ApplyEngine, db_session: Session, mirror_post
) -> None:
    apply_engine.process_comments([build_entry(5, origin_post_id=10)], mirror_post.id)
    apply_engine.process_comments([build_entry(5, origin_post_id=11)], mirror_post.id)

    assert len(CommentRepository(db_session).list_for_post(mirror_post.id)) == 2
    assert _local_id(db_session, 5, 10) != _local_id(db_session, 5, 11)


def test_reply_before_parent_is_resolved(apply_engine: ApplyEngine, db_session: Session, mirror_post) -> None:
    child = build_entry(100, parent=99, content="Reply")
    parent = build_entry(99, content="Parent")

    result = apply_engine.process_comments([child, parent], mirror_post.id)

    assert len(result.success) == 2
    assert result.orphaned == []
    repository = CommentRepository(db_session)
    parent_local = _local_id(db_session, 99)
    child_local = _local_id(db_session, 100)
    assert repository.get(child_local).parent_id == parent_local


def test_deep_chain_in_reverse_order(apply_engine: ApplyEngine, db_session: Session, mirror_post) -> None:
    entries = [
        build_entry(4, parent=3),
        build_entry(3, parent=2),
        build_entry(2, parent=1),
        build_entry(1),
    ]

    result = apply_engine.process_comments(entries, mirror_post.id)

    assert len(result.success) == 4
    repository = CommentRepository(db_session)
    for origin_id in (2, 3, 4):
        local = repository.get(_local_id(db_session, origin_id))
        assert local.parent_id == _local_id(db_session, origin_id - 1)


def test_reply_to_already_mirrored_parent(apply_engine: ApplyEngine, db_session: Session, mirror_post) -> None:
    apply_engine.process_comments([build_entry(1)], mirror_post.id)

    apply_engine.process_comments([build_entry(2, parent=1)], mirror_post.id)

    reply = CommentRepository(db_session).get(_local_id(db_session, 2))
    assert reply.parent_id == _local_id(db_session, 1)


def test_missing_parent_is_reported_as_orphaned(
    apply_engine: ApplyEngine, db_session: Session, mirror_post
) -> None:
    result = apply_engine.process_comments(
        [build_entry(1), build_entry(2, parent=77)], mirror_post.id
    )

    assert len(result.success) == 1
    assert result.orphaned == [2]
    assert result.fail == []
    assert _local_id(db_session, 2) is None


def test_parent_mirrored_from_another_post_does_not_resolve(
    apply_engine: ApplyEngine, db_session: Session, mirror_post
) -> None:
    apply_engine.process_comments([build_entry(1, origin_post_id=11)], mirror_post.id)

    result = apply_engine.process_comments([build_entry(2, parent=1, origin_post_id=10)], mirror_post.id)

    assert result.orphaned == [2]


def test_failed_entry_does_not_stop_batch(
    apply_engine: ApplyEngine, db_session: Session, mirror_post, mocker
) -> None:
    original_insert = apply_engine.repository.insert

    def flaky_insert(post_id, **fields):
        if fields.get("content") == "boom":
            raise CommentStoreError("disk full")
        return original_insert(post_id, **fields)

    mocker.patch.object(apply_engine.repository, "insert", side_effect=flaky_insert)

    result = apply_engine.process_comments(
        [build_entry(1), build_entry(2, content="boom"), build_entry(3)], mirror_post.id
    )

    assert len(result.success) == 2
    assert result.fail == [2]
    assert _local_id(db_session, 2) is None
    assert _local_id(db_session, 1) is not None
    assert _local_id(db_session, 3) is not None


def test_reply_of_failed_parent_is_orphaned(
    apply_engine: ApplyEngine, db_session: Session, mirror_post, mocker
) -> None:
    original_insert = apply_engine.repository.insert

    def flaky_insert(post_id, **fields):
        if fields.get("content") == "boom":
            raise CommentStoreError("disk full")
        return original_insert(post_id, **fields)

    mocker.patch.object(apply_engine.repository, "insert", side_effect=flaky_insert)

    result = apply_engine.process_comments(
        [build_entry(1, content="boom"), build_entry(2, parent=1)], mirror_post.id
    )

    assert result.fail == [1]
    assert result.orphaned == [2]


def test_insert_on_unknown_post_fails(apply_engine: ApplyEngine) -> None:
    result = apply_engine.process_comments([build_entry(1)], 987654)

    assert result.success == []
    assert result.fail == [1]


def test_before_insert_hook_vetoes_fresh_insert(
    apply_engine: ApplyEngine, hooks: HookRegistry, db_session: Session, mirror_post
) -> None:
    seen: list[tuple[int, int]] = []

    def reject_three(comment_data, post_id):
        seen.append((comment_data.id, post_id))
        return comment_data.id != 3

    hooks.add_before_insert(reject_three)

    result = apply_engine.process_comments([build_entry(1), build_entry(3)], mirror_post.id)

    assert len(result.success) == 1
    assert result.fail == [3]
    assert seen == [(1, mirror_post.id), (3, mirror_post.id)]
    assert _local_id(db_session, 3) is None


def test_before_insert_hook_skipped_for_updates(
    apply_engine: ApplyEngine, hooks: HookRegistry, db_session: Session, mirror_post
) -> None:
    apply_engine.process_comments([build_entry(1, content="v1")], mirror_post.id)
    hooks.add_before_insert(lambda comment_data, post_id: False)

    result = apply_engine.process_comments([build_entry(1, content="v2")], mirror_post.id)

    assert len(result.success) == 1
    assert CommentRepository(db_session).get(result.success[0]).content == "v2"


def test_meta_is_copied_and_decoded(apply_engine: ApplyEngine, db_session: Session, mirror_post) -> None:
    entry = build_entry(
        1,
        meta={
            "rating": [5],
            "tags": ['["a", "b"]'],
            "raw": ["{not json"],
            "options": ['{"color": "red"}'],
        },
    )

    result = apply_engine.process_comments([entry], mirror_post.id)

    meta = CommentRepository(db_session).get_meta(result.success[0])
    assert meta["rating"] == [5]
    assert meta["tags"] == [["a", "b"]]
    assert meta["raw"] == ["{not json"]
    assert meta["options"] == [{"color": "red"}]
    assert meta[ORIGINAL_COMMENT_ID_KEY] == [1]


def test_meta_overwrites_by_position_and_keeps_extras(
    apply_engine: ApplyEngine, db_session: Session, mirror_post
) -> None:
    apply_engine.process_comments([build_entry(1, meta={"color": ["red", "blue"]})], mirror_post.id)

    result = apply_engine.process_comments([build_entry(1, meta={"color": ["green"]})], mirror_post.id)

    meta = CommentRepository(db_session).get_meta(result.success[0])
    assert meta["color"] == ["green", "blue"]


def test_meta_denylist_skips_keys(db_session: Session, mirror_post) -> None:
    apply_engine = ApplyEngine(db_session, meta_denylist={"akismet_result"})

    result = apply_engine.process_comments(
        [build_entry(1, meta={"akismet_result": ["false"], "rating": [3]})], mirror_post.id
    )

    meta = CommentRepository(db_session).get_meta(result.success[0])
    assert "akismet_result" not in meta
    assert meta["rating"] == [3]


def test_counting_is_deferred_until_batch_ends(
    apply_engine: ApplyEngine, db_session: Session, mirror_post, mocker
) -> None:
    recount = mocker.spy(apply_engine.repository, "recount")

    with apply_engine.repository.deferred_counting():
        apply_engine.process_comments(
            [build_entry(1), build_entry(2), build_entry(3, approved="0")], mirror_post.id
        )
        assert recount.call_count == 0

    recount.assert_called_once_with(mirror_post.id)
    assert mirror_post.comment_count == 2


# ----------------------------------------------------------------------
# ID based operations
# ----------------------------------------------------------------------


@pytest.fixture()
def mirrored(apply_engine: ApplyEngine, mirror_post):
    """Mirror a parent (origin 1) and a reply (origin 2) from origin post 10."""
    apply_engine.process_comments([build_entry(1), build_entry(2, parent=1)], mirror_post.id)
    return mirror_post


def test_trash_and_untrash(apply_engine: ApplyEngine, db_session: Session, mirrored) -> None:
    repository = CommentRepository(db_session)
    local = repository.get(_local_id(db_session, 1))

    trashed = apply_engine.trash_comments([1], mirrored.id, origin_post_id=10)
    assert trashed.success == [1]
    assert local.status == CommentStatus.TRASH

    restored = apply_engine.untrash_comments([1], mirrored.id, "hold", origin_post_id=10)
    assert restored.success == [1]
    assert local.status == CommentStatus.UNAPPROVED


def test_untrash_approves_when_hub_says_so(apply_engine: ApplyEngine, db_session: Session, mirrored) -> None:
    apply_engine.trash_comments([1], mirrored.id)

    apply_engine.untrash_comments([1], mirrored.id, "approve")

    assert CommentRepository(db_session).get(_local_id(db_session, 1)).status == CommentStatus.APPROVED


def test_spam_and_unspam_reassert_status(apply_engine: ApplyEngine, db_session: Session, mirrored) -> None:
    repository = CommentRepository(db_session)
    local = repository.get(_local_id(db_session, 2))

    apply_engine.spam_comments([2], mirrored.id)
    assert local.status == CommentStatus.SPAM

    result = apply_engine.unspam_comments([2], mirrored.id, "approve")

    assert result.success == [2]
    assert local.status == CommentStatus.APPROVED
    assert repository.get_meta_value(local.id, "_spam_meta_status") is None


def test_status_change(apply_engine: ApplyEngine, db_session: Session, mirrored) -> None:
    result = apply_engine.change_comments_status([1, 2], mirrored.id, "hold")

    assert result.success == [1, 2]
    repository = CommentRepository(db_session)
    for origin_id in (1, 2):
        assert repository.get(_local_id(db_session, origin_id)).status == CommentStatus.UNAPPROVED


def test_delete_reparents_replies(apply_engine: ApplyEngine, db_session: Session, mirrored) -> None:
    repository = CommentRepository(db_session)
    parent_local = _local_id(db_session, 1)
    reply = repository.get(_local_id(db_session, 2))

    result = apply_engine.delete_comments([1], mirrored.id, origin_post_id=10)

    assert result.success == [1]
    assert repository.get(parent_local) is None
    assert repository.get_meta_rows(parent_local) == []
    assert reply.parent_id == 0


def test_unknown_ids_are_skipped(apply_engine: ApplyEngine, mirrored) -> None:
    result = apply_engine.trash_comments([404], mirrored.id)

    assert result.success == []
    assert result.fail == []


def test_id_operations_respect_origin_post(apply_engine: ApplyEngine, db_session: Session, mirrored) -> None:
    result = apply_engine.trash_comments([1], mirrored.id, origin_post_id=11)

    assert result.success == []
    local = CommentRepository(db_session).get(_local_id(db_session, 1))
    assert local.status == CommentStatus.APPROVED


def test_id_operation_failure_is_isolated(
    apply_engine: ApplyEngine, db_session: Session, mirrored, mocker
) -> None:
    original_trash = apply_engine.repository.trash
    failing_id = _local_id(db_session, 1)

    def flaky_trash(comment):
        if comment.id == failing_id:
            raise CommentStoreError("locked")
        return original_trash(comment)

    mocker.patch.object(apply_engine.repository, "trash", side_effect=flaky_trash)

    result = apply_engine.trash_comments([1, 2], mirrored.id)

    assert result.fail == [1]
    assert result.success == [2]


def test_storage_error_is_reported_as_failure(
    apply_engine: ApplyEngine, db_session: Session, mirror_post, mocker
) -> None:
    mocker.patch.object(
        apply_engine.repository,
        "insert",
        side_effect=OperationalError("INSERT", {}, Exception("database is locked")),
    )

    result = apply_engine.process_comments([build_entry(1)], mirror_post.id)

    assert result.fail == [1]
    assert result.success == []


def test_store_error_belongs_to_sync_errors() -> None:
    assert issubclass(CommentStoreError, CommentSyncError)


def test_untrash_of_live_mirror_fails(apply_engine: ApplyEngine, db_session: Session, mirrored) -> None:
    result = apply_engine.untrash_comments([1], mirrored.id, "hold")

    assert result.success == []
    assert result.fail == [1]
    local = CommentRepository(db_session).get(_local_id(db_session, 1))
    assert local.status == CommentStatus.APPROVED


def test_unspam_of_live_mirror_fails(apply_engine: ApplyEngine, db_session: Session, mirrored) -> None:
    apply_engine.spam_comments([2], mirrored.id)

    result = apply_engine.unspam_comments([1, 2], mirrored.id, "approve")

    assert result.fail == [1]
    assert result.success == [2]
