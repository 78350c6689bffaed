"""
Timestamp Utilities
===================

Conversion between aware UTC datetimes and the persisted ISO-8601 form
(millisecond precision, ``Z`` suffix, e.g. ``2025-01-02T03:04:05.678Z``).
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime truncated to milliseconds."""
    return truncate_ms(datetime.now(timezone.utc))


def truncate_ms(value: datetime) -> datetime:
    """Drop sub-millisecond precision, which the persisted form cannot hold."""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def to_iso(value: datetime) -> str:
    """Serialize a datetime to the persisted ISO-8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def from_iso(text: str) -> datetime:
    """
    Parse a persisted ISO-8601 string into an aware UTC datetime.

    Accepts the ``Z`` suffix, explicit offsets, and naive strings
    (interpreted as UTC).

    Raises:
        ValueError: If the text is not a valid ISO-8601 timestamp or falls
            outside the representable UTC range
    """
    if not isinstance(text, str):
        raise ValueError(f"Expected ISO-8601 string, got {type(text).__name__}")
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: {text}") from e
