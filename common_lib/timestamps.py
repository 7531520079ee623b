"""Timestamp utilities for consistent datetime handling across the service."""

from datetime import date, datetime, timezone
from typing import Any, Optional

from .errors import InvalidInputError
from .logger import get_logger

logger = get_logger(__name__)


def normalize_timestamp(value: Any) -> Optional[str]:
    """
    Convert a stored timestamp to its ISO format wire form.

    Args:
        value: A datetime/date object, an ISO format string, or None

    Returns:
        ISO format string, or None when the value is absent
    """
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        return value
    logger.warning("Unexpected timestamp type %s, serializing with str()", type(value).__name__)
    return str(value)


def ensure_datetime(value: Any, field: str = "date") -> datetime:
    """
    Convert caller input to a naive UTC datetime.

    Args:
        value: A datetime, a date, or an ISO format string ("Z" suffix accepted)
        field: Name reported back when the value cannot be parsed

    Returns:
        naive datetime in UTC, matching how the tables store timestamps

    Raises:
        InvalidInputError: If the value is not a recognizable timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInputError(field=field, reason=f"'{value}' is not an ISO-8601 timestamp") from exc
    else:
        raise InvalidInputError(field=field, reason=f"unsupported timestamp type {type(value).__name__}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def ensure_date(value: Any) -> date:
    """Coerce a day value returned by the database into a ``date``.

    SQLite hands back ``YYYY-MM-DD`` strings for ``date()`` expressions, PostgreSQL
    hands back ``date`` objects.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
