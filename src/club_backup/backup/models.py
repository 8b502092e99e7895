"""Backup models: snapshots and restore reports.

Usage:
    from club_backup.backup.models import Snapshot, RestoreReport, RestoreStatus

    snapshot = Snapshot.model_validate({"metadata": {"tables": ["clubs"]}})
    report = RestoreReport(status=RestoreStatus.PARTIAL, message="1 table failed")
    report.http_status  # 207
"""

import json
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator

from club_backup.backup.codec import Row, decode_rows

SNAPSHOT_VERSION = "1.0"
METADATA_KEY = "_metadata"


# ============================================================================
# Snapshot
# ============================================================================


class SnapshotMetadata(BaseModel):
    """The ``_metadata`` block of a snapshot document.

    ``tables`` is authoritative: restore never touches a key that is
    not listed here, and it is the only field validated strictly.  The
    other fields are informational; a value of the wrong type is
    coerced where that is unambiguous and dropped otherwise (see
    ``metadata_warnings``).  Unknown metadata keys are kept as-is.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    version: str = SNAPSHOT_VERSION
    created_at: str | None = Field(
        default=None,
        validation_alias=AliasChoices("createdAt", "timestamp", "created_at"),
        serialization_alias="createdAt",
    )
    tables: list[str] = Field(min_length=1)
    counts: dict[str, int] = Field(default_factory=dict)
    failed_tables: list[str] = Field(default_factory=list, alias="failedTables")

    @field_validator("version", mode="before")
    @classmethod
    def _lax_version(cls, value: Any) -> str:
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value)
        return SNAPSHOT_VERSION

    @field_validator("created_at", mode="before")
    @classmethod
    def _lax_created_at(cls, value: Any) -> str | None:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None

    @field_validator("counts", mode="before")
    @classmethod
    def _lax_counts(cls, value: Any) -> dict[str, int]:
        if not isinstance(value, dict):
            return {}
        return {
            str(k): v
            for k, v in value.items()
            if isinstance(v, int) and not isinstance(v, bool)
        }

    @field_validator("failed_tables", mode="before")
    @classmethod
    def _lax_failed_tables(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [t for t in value if isinstance(t, str)]


_CREATED_AT_KEYS = ("createdAt", "timestamp", "created_at")


def metadata_warnings(raw: dict[str, Any]) -> list[str]:
    """Describe informational metadata fields that had to be coerced or dropped.

    ``raw`` is the ``_metadata`` dict as it appeared in the document.
    """
    warnings: list[str] = []

    def note(key: str, value: Any, expected: str) -> None:
        warnings.append(
            f"Metadata field {key} is {type(value).__name__}, expected {expected}; ignored"
        )

    if "version" in raw and not isinstance(raw["version"], str):
        note("version", raw["version"], "string")
    for key in _CREATED_AT_KEYS:
        if key in raw and not isinstance(raw[key], str):
            note(key, raw[key], "string")
            break

    counts = raw.get("counts")
    if "counts" in raw:
        if not isinstance(counts, dict):
            note("counts", counts, "object")
        elif any(not isinstance(v, int) or isinstance(v, bool) for v in counts.values()):
            warnings.append("Metadata field counts has non-integer entries; ignored")

    failed = raw.get("failedTables")
    if "failedTables" in raw:
        if not isinstance(failed, list):
            note("failedTables", failed, "array")
        elif any(not isinstance(t, str) for t in failed):
            warnings.append("Metadata field failedTables has non-string entries; ignored")

    return warnings


class Snapshot(BaseModel):
    """A whole-database backup: metadata plus one raw dump per listed table.

    Dumps are held as they arrived and decoded lazily with ``rows()``,
    so one malformed dump fails its own table and nothing else.
    """

    metadata: SnapshotMetadata
    dumps: dict[str, Any] = Field(default_factory=dict)

    def rows(self, table: str) -> list[Row]:
        """Decoded rows for ``table`` (empty when absent or not a list).

        Raises:
            RowFormatError: If the dump holds a non-object entry.
        """
        return decode_rows(self.dumps.get(table), table)

    def to_document(self) -> dict[str, Any]:
        """Build the JSON-ready snapshot document."""
        document: dict[str, Any] = {
            METADATA_KEY: self.metadata.model_dump(by_alias=True),
        }
        for table in self.metadata.tables:
            document[table] = self.dumps.get(table, [])
        return document

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize the snapshot document to a JSON string."""
        return json.dumps(self.to_document(), indent=indent, default=str)


# ============================================================================
# Restore Report
# ============================================================================


class RestoreStatus(str, Enum):
    """Overall outcome of a restore.

    SUCCESS: every attempted table restored.
    PARTIAL: at least one table failed; the rest were still attempted.
    INVALID_FORMAT: the snapshot failed validation; nothing was touched.
    """

    SUCCESS = "success"
    PARTIAL = "partial"
    INVALID_FORMAT = "invalid_format"


_HTTP_STATUS = {
    RestoreStatus.SUCCESS: 200,
    RestoreStatus.PARTIAL: 207,
    RestoreStatus.INVALID_FORMAT: 400,
}


class TableResult(BaseModel):
    """Outcome for one table."""

    restored: bool
    inserted: int = 0
    error: str | None = None


class RestoreReport(BaseModel):
    """Structured result of a restore, always returned to the caller.

    Example:
        >>> report = RestoreReport(status=RestoreStatus.SUCCESS, message="ok")
        >>> report.success, report.http_status
        (True, 200)
    """

    model_config = ConfigDict(populate_by_name=True)

    status: RestoreStatus
    message: str
    tables_restored: int = Field(default=0, alias="tablesRestored")
    errors: int = 0
    total_tables: int = Field(default=0, alias="totalTables")
    failed_tables: list[str] = Field(default_factory=list, alias="failedTables")
    table_results: dict[str, TableResult] = Field(
        default_factory=dict, alias="tableResults"
    )
    error_messages: list[str] = Field(default_factory=list, alias="errorMessages")

    @computed_field
    @property
    def success(self) -> bool:
        """True only for a full restore."""
        return self.status is RestoreStatus.SUCCESS

    @property
    def http_status(self) -> int:
        """200 for success, 207 (multi-status) for partial, 400 for invalid input."""
        return _HTTP_STATUS[self.status]

    def to_response(self) -> dict[str, Any]:
        """Response body in the ``{success, message, details}`` shape the admin UI reads."""
        if self.status is RestoreStatus.INVALID_FORMAT:
            return {"success": False, "error": self.message}

        return {
            "success": self.success,
            "message": self.message,
            "details": {
                "tablesRestored": self.tables_restored,
                "errors": self.errors,
                "totalTables": self.total_tables,
                "failedTables": self.failed_tables,
                "tableResults": {
                    name: result.model_dump(exclude_none=True)
                    for name, result in self.table_results.items()
                },
                "errorMessages": self.error_messages,
            },
        }
