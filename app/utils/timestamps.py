# app/utils/timestamps.py

from datetime import datetime, timezone
from typing import Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string (the format documents are stored in)."""
    return utcnow().isoformat()


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parses a stored timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
