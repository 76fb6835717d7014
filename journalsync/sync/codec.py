"""Serialization of the master index."""

import json
import logging
from typing import Optional

from ..exceptions import ValidationError
from ..models import IndexRecord, MasterIndex

logger = logging.getLogger(__name__)


class IndexCodec:
    """Encodes and strictly decodes the master index.

    Decoding is all-or-nothing: a malformed index must never be read as
    "no entries", since that would tombstone everything on the other side.
    """

    @staticmethod
    def decode(raw: bytes) -> MasterIndex:
        """Parse a serialized master index.

        Args:
            raw: UTF-8 JSON bytes

        Returns:
            Parsed master index

        Raises:
            ValidationError: If the payload or any record is malformed
        """
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Master index is not valid JSON: {e}") from e

        if not isinstance(parsed, dict):
            raise ValidationError("Master index is not a JSON object")

        index: MasterIndex = {}
        for entry_id, value in parsed.items():
            try:
                index[entry_id] = IndexRecord.from_dict(value)
            except ValidationError as e:
                raise ValidationError(
                    f"Master index record {entry_id!r} is invalid: {e}"
                ) from e

        logger.debug(f"Decoded master index with {len(index)} record(s)")
        return index

    @staticmethod
    def encode(index: MasterIndex, indent: Optional[int] = None) -> bytes:
        """Serialize a master index with a canonical key ordering.

        Args:
            index: Master index to serialize
            indent: Optional indentation for human-readable output

        Returns:
            UTF-8 JSON bytes
        """
        data = {entry_id: record.to_dict() for entry_id, record in index.items()}
        separators = (",", ": ") if indent is not None else (",", ":")
        return json.dumps(
            data, sort_keys=True, indent=indent, separators=separators
        ).encode("utf-8")
