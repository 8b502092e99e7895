"""Row codec: table rows to and from JSON-safe records.

Rows are opaque -- the codec knows nothing about column types.  On the
way out it turns driver values (UUIDs, timestamps, decimals, bytes)
into JSON values; on the way in it only checks that a table dump is a
list of objects.

Usage:
    from club_backup.backup.codec import decode_rows, encode_rows

    dump = encode_rows(await adapter.select("clubs", "*"))
    rows = decode_rows(snapshot_document.get("clubs"))
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

# A row is an insertion-ordered column -> JSON value mapping.  Key order
# is kept end to end so a dump reads back column for column.
Row = dict[str, Any]


class RowFormatError(ValueError):
    """Raised when a table dump is a list but holds something other than objects."""

    pass


def encode_value(value: Any) -> Any:
    """Convert one column value to a JSON-safe value.

    Examples:
        >>> encode_value(Decimal("12.50"))
        '12.50'
        >>> encode_value(date(2026, 1, 31))
        '2026-01-31'
        >>> encode_value(b"\\xde\\xad")
        '\\\\xdead'
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [encode_value(v) for v in value]
    return str(value)


def encode_row(row: dict) -> Row:
    """Encode every value of a row, keeping column order."""
    return {str(k): encode_value(v) for k, v in row.items()}


def encode_rows(rows: list[dict]) -> list[Row]:
    """Encode a whole table dump."""
    return [encode_row(r) for r in rows]


def decode_rows(value: Any, table: str = "") -> list[Row]:
    """Turn a raw table dump from a snapshot into rows.

    Args:
        value: Whatever the snapshot holds under the table's key.
        table: Table name, used in the error message only.

    Returns:
        The rows, or an empty list when the dump is absent or not a list
        (nothing to restore).

    Raises:
        RowFormatError: If the dump is a list with a non-object entry.
    """
    if not isinstance(value, list):
        return []

    for index, row in enumerate(value):
        if not isinstance(row, dict):
            raise RowFormatError(
                f"{table or 'table'} row {index} is {type(row).__name__}, expected object"
            )
    return value
