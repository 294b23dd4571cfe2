"""Helpers for storing comment metadata values."""

from __future__ import annotations

import json
from typing import Any

_STRUCTURE_OPENERS = ("{", "[")


def maybe_decode(value: Any) -> Any:
    """Decode ``value`` when it is a string holding a serialized JSON structure.

    Scalars and strings that merely look like structures but fail to parse are
    returned unchanged.
    """
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if not stripped.startswith(_STRUCTURE_OPENERS):
        return value
    try:
        decoded = json.loads(stripped)
    except ValueError:
        return value
    if isinstance(decoded, dict | list):
        return decoded
    return value


def encode_meta_value(value: Any) -> str:
    """Encode a metadata value for storage."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def decode_meta_value(raw: str | None) -> Any:
    """Decode a stored metadata value; undecodable rows come back as raw text."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw
