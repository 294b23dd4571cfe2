"""Time utilities for database models."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime, the way comment dates are stored."""
    return datetime.now(UTC).replace(tzinfo=None)
