"""Date parsing for feed and API timestamps."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import structlog

logger = structlog.get_logger(__name__)

FALLBACK_FORMATS = ("%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%d %H:%M:%S%z", "%Y%m%dT%H%M%S")


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_feed_date(date_str: str | None) -> datetime | None:
    """Parse RSS/Atom/API date strings into a timezone-aware UTC datetime.

    Handles RFC 2822 (standard RSS), ISO 8601, and common variants.
    Returns None when the string is empty or unparseable.
    """
    if not date_str or not date_str.strip():
        return None

    date_str = date_str.strip()

    try:
        return _as_utc(parsedate_to_datetime(date_str))
    except (TypeError, ValueError, IndexError):
        pass

    try:
        return _as_utc(datetime.fromisoformat(date_str.replace("Z", "+00:00")))
    except ValueError:
        pass

    for fmt in FALLBACK_FORMATS:
        try:
            return _as_utc(datetime.strptime(date_str, fmt))
        except ValueError:
            continue

    logger.debug("feed_date_parse_failed", date_str=date_str)
    return None
