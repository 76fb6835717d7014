"""Utility functions for journalsync."""

import html
import random
import re
import time
from datetime import datetime
from typing import Optional

from .exceptions import ValidationError

# =============================================================================
# Constants for sync operations
# =============================================================================

# Name of the master index, both as local file and as remote object key
MASTER_INDEX_FILE_NAME: str = "masterIndex.json"

# Prefix of remote entry objects
ENTRIES_PREFIX: str = "entries/"

# Retry configuration for failed transfers during a merge
DEFAULT_TRANSFER_RETRIES: int = 2
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Retry configuration for the HTTP object store
DEFAULT_HTTP_MAX_RETRIES: int = 3
DEFAULT_HTTP_TIMEOUT: float = 30.0  # seconds

MONTH_NAMES = [
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
]

_ENTRY_ID_RE = re.compile(r"^[a-z]{3}\.\d{1,2}\.\d{4}$")
_JOURNAL_DATE_RE = re.compile(r"^[A-Z][a-z]{2} \d{1,2}, \d{4} at \d{2}:\d{2}:\d{2}$")


# =============================================================================
# Timestamp utilities
# =============================================================================


def now_millis() -> int:
    """Return the current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def format_millis(millis: Optional[int]) -> str:
    """Format epoch milliseconds for display.

    Args:
        millis: Epoch milliseconds

    Returns:
        Local time as "YYYY-MM-DD HH:MM:SS", or "-" if not set
    """
    if not millis:
        return "-"
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M:%S")


def calculate_retry_delay(base_delay: float, attempt: int) -> float:
    """Calculate delay before next retry using exponential backoff.

    Args:
        base_delay: Delay for the first retry in seconds
        attempt: Current attempt number (0-based)

    Returns:
        Delay in seconds
    """
    # Exponential backoff with +/- 25% jitter
    delay = base_delay * (2**attempt)
    jitter = delay * 0.25 * (2 * random.random() - 1)
    return max(0.0, delay + jitter)


# =============================================================================
# Entry keys and identifiers
# =============================================================================


def entry_key(entry_id: str) -> str:
    """Build the remote object key for an entry.

    Args:
        entry_id: Entry ID (e.g. "feb.25.2018")

    Returns:
        Remote key in the form "entries/{id}.json"

    Raises:
        ValidationError: If the ID is empty or would escape the entries prefix
    """
    if not entry_id or "/" in entry_id or "\\" in entry_id:
        raise ValidationError(f"Invalid entry id: {entry_id!r}")
    return f"{ENTRIES_PREFIX}{entry_id}.json"


def validate_entry_id(entry_id: str) -> None:
    """Validate the journal entry ID format "feb.25.2018".

    Raises:
        ValidationError: If the ID does not match the expected format
    """
    if not _ENTRY_ID_RE.match(entry_id or ""):
        raise ValidationError(
            f'Invalid entry id {entry_id!r}: must be in format "feb.25.2018"'
        )


def validate_journal_date(date: str) -> None:
    """Validate the journal date format "Feb 27, 2018 at 15:14:10".

    Raises:
        ValidationError: If the date does not match the expected format
    """
    if not _JOURNAL_DATE_RE.match(date or ""):
        raise ValidationError(
            f'Invalid date {date!r}: must be in format "Feb 27, 2018 at 15:14:10"'
        )


def format_journal_date(dt: Optional[datetime] = None) -> str:
    """Format a datetime as a journal date string.

    Args:
        dt: Datetime to format (defaults to now)

    Returns:
        Date string like "Feb 27, 2018 at 15:14:10"
    """
    dt = dt or datetime.now()
    month = MONTH_NAMES[dt.month - 1]
    return f"{month} {dt.day}, {dt.year} at {dt:%H:%M:%S}"


def parse_journal_date(date_str: str) -> Optional[int]:
    """Parse a journal date string into epoch milliseconds.

    Args:
        date_str: Date like "May 26, 2018 at 16:00:00" (local time)

    Returns:
        Epoch milliseconds or None if the string cannot be parsed
    """
    date_part, sep, time_part = (date_str or "").partition(" at ")
    if not sep or not time_part:
        return None
    parts = date_part.replace(",", "").split(" ")
    if len(parts) != 3:
        return None
    month, day, year = parts
    if month not in MONTH_NAMES:
        return None

    try:
        hour, minute, second = (int(p) for p in time_part.split(":"))
        dt = datetime(
            int(year), MONTH_NAMES.index(month) + 1, int(day), hour, minute, second
        )
    except ValueError:
        return None
    return int(dt.timestamp() * 1000)


def generate_id_from_date(date_str: str) -> str:
    """Generate an entry ID from a journal date.

    Args:
        date_str: Date like "Feb 25, 2018 at 10:00:00"

    Returns:
        Entry ID like "feb.25.2018"
    """
    date_part = date_str.split(" at ")[0]
    month, day, year = date_part.replace(",", "").split(" ")
    return f"{month.lower()}.{day}.{year}"


def encode_html_entities(raw: str) -> str:
    """Encode HTML special characters the way a textarea serializes text.

    Only ``&``, ``<`` and ``>`` are escaped; quotes are left untouched.
    """
    return html.escape(raw, quote=False)
