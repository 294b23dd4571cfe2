"""Business logic services for comment synchronization."""

from .apply import ApplyEngine
from .dispatcher import CommentDispatcher, get_comment_dispatcher
from .hooks import HookRegistry, get_hook_registry
from .identity import IdentityResolver
from .notifications import NotificationBus, get_notification_bus
from .observer import CommentObserver

__all__ = [
    "ApplyEngine",
    "CommentDispatcher", "get_comment_dispatcher",
    "CommentObserver",
    "HookRegistry", "get_hook_registry",
    "IdentityResolver",
    "NotificationBus", "get_notification_bus",
]
