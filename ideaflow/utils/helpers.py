"""Shared utility functions.

normalize_timestamp:  collaborator-native timestamps → aware UTC datetime
to_iso:               datetime → ISO-8601 string for document bodies
utcnow:               default clock for the services
clean_str:            strip user input, None for blank values
"""
import logging
from datetime import date, datetime, time, timezone

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_timestamp(value):
    """Convert any stored timestamp representation to an aware UTC datetime.

    Document stores hand back timestamps in their own shape. This is the one
    place where they become a single in-process type. Supports:
    - datetime (naive values are treated as UTC)
    - date (midnight UTC)
    - ISO-8601 strings, including a trailing ``Z``
    - int/float epoch seconds
    - objects exposing ``to_datetime()`` or ``ToDatetime()`` (client-library
      timestamp wrappers)

    Returns None for empty input. Raises ValueError for anything else.
    """
    if value is None or value == "":
        return None
    if hasattr(value, "to_datetime"):
        value = value.to_datetime()
    elif hasattr(value, "ToDatetime"):
        value = value.ToDatetime()

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return normalize_timestamp(datetime.fromisoformat(raw))
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp: {value!r}") from exc
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def to_iso(value) -> str | None:
    """Serialise a timestamp for a document body (None stays None)."""
    ts = normalize_timestamp(value)
    return ts.isoformat() if ts else None


def clean_str(value) -> str | None:
    """Strip a user-supplied string. Blank or missing values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
