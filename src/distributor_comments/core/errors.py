"""Exceptions raised by the comment sync core."""


class CommentSyncError(RuntimeError):
    """Base class for comment sync failures."""
