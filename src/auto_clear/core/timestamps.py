"""Timestamp helpers for persisted records."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def format_timestamp(value: datetime | None) -> str | None:
    """Render a datetime as an ISO 8601 string, passing ``None`` through."""
    return value.isoformat() if value is not None else None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string back into a datetime.

    Naive values are assumed to be UTC so that records written by older
    tools (``2024-01-01T12:00:00``) load as aware datetimes.

    Args:
        value: ISO 8601 string, or ``None``/empty for a missing value.

    Returns:
        Timezone-aware datetime, or ``None`` when no value is present.

    Raises:
        ValueError: If the value is present but not ISO 8601.

    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        msg = f"Cannot parse timestamp: {value!r}. Use ISO 8601."
        raise ValueError(msg) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
