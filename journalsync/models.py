"""Data models for journal entries and the master index."""

import json
import math
from dataclasses import dataclass
from typing import Any

from .exceptions import ValidationError


def _is_number(value: Any) -> bool:
    # bool is a subclass of int but never a valid timestamp
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def coerce_millis(value: Any, field_name: str) -> int:
    """Coerce a JSON number into integer epoch milliseconds.

    Args:
        value: Raw JSON value
        field_name: Field name used in error messages

    Returns:
        Integer milliseconds

    Raises:
        ValidationError: If the value is not a finite integral number
    """
    if not _is_number(value):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError(
                f"{field_name} must be an integral number, got {value!r}"
            )
        return int(value)
    return value


@dataclass(frozen=True)
class IndexRecord:
    """Per-entry metadata held in the master index."""

    last_modified: int
    """Epoch milliseconds of the last create, edit or delete"""

    deleted: bool = False
    """True if this record is a tombstone"""

    def to_dict(self) -> dict:
        """Convert record to its JSON form."""
        return {"lastModified": self.last_modified, "deleted": self.deleted}

    @classmethod
    def from_dict(cls, data: Any) -> "IndexRecord":
        """Create an IndexRecord from its JSON form.

        Raises:
            ValidationError: If lastModified is not numeric or deleted not boolean
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Index record must be an object, got {data!r}")
        last_modified = coerce_millis(data.get("lastModified"), "lastModified")
        deleted = data.get("deleted")
        if not isinstance(deleted, bool):
            raise ValidationError(f"deleted must be a boolean, got {deleted!r}")
        return cls(last_modified=last_modified, deleted=deleted)


MasterIndex = dict[str, IndexRecord]
"""Mapping from entry ID to its index record"""


@dataclass
class Entry:
    """A journal entry as stored locally and remotely."""

    id: str
    """Entry ID, e.g. "feb.25.2018" """

    date: str
    """Journal date, e.g. "Feb 25, 2018 at 10:00:00" """

    content: str
    """HTML-entity-encoded content"""

    timestamp: int = 0
    """Epoch milliseconds derived from the journal date"""

    last_modified: int = 0
    """Epoch milliseconds of the last modification"""

    def to_dict(self) -> dict:
        """Convert entry to its JSON form."""
        return {
            "id": self.id,
            "date": self.date,
            "content": self.content,
            "timestamp": self.timestamp,
            "lastModified": self.last_modified,
        }

    def to_json(self) -> bytes:
        """Serialize entry to UTF-8 JSON bytes."""
        return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Any) -> "Entry":
        """Create an Entry from its JSON form.

        ``timestamp`` and ``lastModified`` default to 0 for entries written
        before those fields existed.

        Raises:
            ValidationError: If a required field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Entry must be an object, got {type(data).__name__}")
        for name in ("id", "date", "content"):
            if not isinstance(data.get(name), str):
                raise ValidationError(f"Entry field {name!r} missing or not a string")

        timestamp = data.get("timestamp")
        last_modified = data.get("lastModified")
        return cls(
            id=data["id"],
            date=data["date"],
            content=data["content"],
            timestamp=0 if timestamp is None else coerce_millis(timestamp, "timestamp"),
            last_modified=(
                0
                if last_modified is None
                else coerce_millis(last_modified, "lastModified")
            ),
        )

    @classmethod
    def from_json(cls, raw: bytes) -> "Entry":
        """Parse an entry from JSON bytes.

        Raises:
            ValidationError: If the payload is not valid entry JSON
        """
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Entry is not valid JSON: {e}") from e
        return cls.from_dict(data)
