"""Extension points the host application can register callbacks on.

Callbacks run in registration order at well defined points of the sync flow:

- ``before_dispatch(event) -> bool``: return False to cancel pushing an event.
- ``payload_filter(payload, event) -> dict | None``: rewrite the body sent for
  one event kind; returning None keeps the payload as is.
- ``before_insert(comment_data, post_id) -> bool | None``: runs before a fresh
  mirror is inserted on a destination; return False to skip that comment.
- ``after_comments_processed(post_id, kind)``: runs once a push was applied.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from distributor_comments.services.events import EventKind, PropagationEvent

if TYPE_CHECKING:
    from distributor_comments.schemas.comment import CommentData

logger = logging.getLogger(__name__)

BeforeDispatchHook = Callable[[PropagationEvent], bool]
PayloadFilter = Callable[[dict[str, Any], PropagationEvent], "dict[str, Any] | None"]
BeforeInsertHook = Callable[["CommentData", int], "bool | None"]
AfterProcessedHook = Callable[[int, EventKind], None]


@dataclass
class HookRegistry:
    """Ordered callbacks for each extension point."""

    before_dispatch: list[BeforeDispatchHook] = field(default_factory=list)
    payload_filters: dict[EventKind, list[PayloadFilter]] = field(default_factory=dict)
    before_insert: list[BeforeInsertHook] = field(default_factory=list)
    after_comments_processed: list[AfterProcessedHook] = field(default_factory=list)

    def add_before_dispatch(self, hook: BeforeDispatchHook) -> BeforeDispatchHook:
        self.before_dispatch.append(hook)
        return hook

    def add_payload_filter(self, kind: EventKind, hook: PayloadFilter) -> PayloadFilter:
        self.payload_filters.setdefault(kind, []).append(hook)
        return hook

    def add_before_insert(self, hook: BeforeInsertHook) -> BeforeInsertHook:
        self.before_insert.append(hook)
        return hook

    def add_after_comments_processed(self, hook: AfterProcessedHook) -> AfterProcessedHook:
        self.after_comments_processed.append(hook)
        return hook

    def allow_dispatch(self, event: PropagationEvent) -> bool:
        """Return False as soon as one callback vetoes the event."""
        for hook in self.before_dispatch:
            if hook(event) is False:
                logger.warning(
                    "Push of %s for post %s vetoed by %s",
                    event.kind.value,
                    event.post_id,
                    getattr(hook, "__name__", repr(hook)),
                )
                return False
        return True

    def filter_payload(self, payload: dict[str, Any], event: PropagationEvent) -> dict[str, Any]:
        """Pass a payload through the filters registered for the event kind."""
        for hook in self.payload_filters.get(event.kind, []):
            replaced = hook(payload, event)
            if replaced is not None:
                payload = replaced
        return payload

    def allow_insert(self, comment_data: CommentData, post_id: int) -> bool:
        """Return False if a callback vetoes inserting a fresh mirror."""
        return all(hook(comment_data, post_id) is not False for hook in self.before_insert)

    def comments_processed(self, post_id: int, kind: EventKind) -> None:
        for hook in self.after_comments_processed:
            hook(post_id, kind)

    def clear(self) -> None:
        """Drop every registered callback."""
        self.before_dispatch.clear()
        self.payload_filters.clear()
        self.before_insert.clear()
        self.after_comments_processed.clear()


class _HookRegistrySingleton:
    """Singleton wrapper for the application's HookRegistry."""

    _instance: HookRegistry | None = None

    @classmethod
    def get_instance(cls) -> HookRegistry:
        if cls._instance is None:
            cls._instance = HookRegistry()
        return cls._instance


def get_hook_registry() -> HookRegistry:
    """Return the application-wide hook registry."""
    return _HookRegistrySingleton.get_instance()
