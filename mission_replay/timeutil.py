"""Timestamp parsing shared by the index, the reconstructor and the sources.

Mission stores write ``CURRENT_TIMESTAMP`` values such as
``2024-01-01 10:00:00``. Those carry no zone marker but are UTC, never local
time, so every naive value is pinned to UTC here.
"""

import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def parse_instant(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime.

    Returns None for empty or unparseable input instead of raising.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp: %r", value)
            return None
    else:
        logger.debug("Unsupported timestamp type: %s", type(value).__name__)
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_instant(dt: datetime | None) -> str:
    """Render an instant as ``YYYY-MM-DD HH:MM:SS`` UTC for displays."""
    if dt is None:
        return "--:--:--"
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
