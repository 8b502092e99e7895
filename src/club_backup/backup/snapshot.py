"""Snapshot reader and writer.

Builds snapshot documents from per-table dumps and parses incoming
payloads back into a ``Snapshot``.  Transport layers tend to re-encode
the payload, so ``parse_snapshot`` accepts any of:

- the document itself (a dict with ``_metadata``)
- the document as a JSON string or bytes
- ``{"backup": <document or JSON string>}``
- ``{"data": <JSON string>}``

Usage:
    from club_backup.backup.snapshot import build_snapshot, parse_snapshot, save_snapshot

    snapshot = build_snapshot({"clubs": rows}, failed_tables=[])
    path = save_snapshot(snapshot)

    snapshot = parse_snapshot(Path(path).read_text())
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from club_backup.backup.codec import Row, RowFormatError
from club_backup.backup.models import (
    METADATA_KEY,
    Snapshot,
    SnapshotMetadata,
    metadata_warnings,
)


class InvalidSnapshotError(ValueError):
    """Raised when a payload is not a usable snapshot document."""

    pass


# ============================================================================
# Writer
# ============================================================================


def build_snapshot(
    dumps: dict[str, list[Row]],
    failed_tables: list[str] | None = None,
    created_at: datetime | None = None,
) -> Snapshot:
    """Assemble a snapshot from table dumps.

    Args:
        dumps: Table name -> encoded rows, in the order tables were read.
            Every key is listed in ``metadata.tables``, including tables
            with zero rows.
        failed_tables: Tables whose read failed; recorded in metadata only.
        created_at: Backup timestamp.  Defaults to now (UTC).

    Raises:
        InvalidSnapshotError: If there is not a single table to list.
    """
    created_at = created_at or datetime.now(timezone.utc)
    if not dumps:
        raise InvalidSnapshotError("Snapshot has no tables")

    metadata = SnapshotMetadata(
        created_at=created_at.isoformat(),
        tables=list(dumps.keys()),
        counts={table: len(rows) for table, rows in dumps.items()},
        failed_tables=list(failed_tables or []),
    )
    return Snapshot(metadata=metadata, dumps=dict(dumps))


def default_backup_path(created_at: datetime | None = None) -> Path:
    """``./backups/database-backup-<timestamp>.json`` with ``:`` and ``.`` made file-safe."""
    created_at = created_at or datetime.now(timezone.utc)
    stamp = created_at.isoformat().replace(":", "-").replace(".", "-")
    return Path.cwd() / "backups" / f"database-backup-{stamp}.json"


def save_snapshot(snapshot: Snapshot, output_path: str | None = None) -> str:
    """Write a snapshot to a JSON file.

    Args:
        snapshot: Snapshot to write.
        output_path: Destination.  When ``None``, uses ``default_backup_path()``.

    Returns:
        Path of the written file.
    """
    path = Path(output_path) if output_path else default_backup_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(snapshot.to_json(indent=2))
    return str(path)


# ============================================================================
# Reader
# ============================================================================


def _decode_json(text: str | bytes) -> Any:
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSnapshotError(
                f"Invalid backup format. Backup file is not UTF-8 text. Error: {e}"
            ) from e
    if not text.strip():
        raise InvalidSnapshotError("No backup file provided")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidSnapshotError(
            f"Invalid backup format. Please upload a valid JSON backup file. Error: {e}"
        ) from e


def unwrap_payload(payload: Any) -> dict[str, Any]:
    """Peel transport envelopes off ``payload`` and return the document dict.

    Raises:
        InvalidSnapshotError: If no document can be found.
    """
    if payload is None:
        raise InvalidSnapshotError("No backup file provided")

    if isinstance(payload, (str, bytes)):
        payload = _decode_json(payload)
        # Doubly-encoded: a JSON string whose content is the document
        if isinstance(payload, str):
            payload = _decode_json(payload)

    if not isinstance(payload, dict):
        raise InvalidSnapshotError(
            f"Invalid backup format. Expected an object, got {type(payload).__name__}"
        )

    if METADATA_KEY in payload:
        return payload

    wrapped = payload.get("backup")
    if isinstance(wrapped, (str, bytes)):
        return unwrap_payload(wrapped)
    if isinstance(wrapped, dict) and METADATA_KEY in wrapped:
        return wrapped

    data = payload.get("data")
    if isinstance(data, (str, bytes)):
        return unwrap_payload(data)

    raise InvalidSnapshotError("Invalid backup format. Missing metadata.")


def parse_snapshot(payload: Any) -> Snapshot:
    """Parse and validate a snapshot payload.

    Only dumps for tables named in ``_metadata.tables`` are kept; any
    other top-level key is dropped here and can never reach the store.

    Args:
        payload: Document dict, JSON text, or a wrapped envelope.

    Returns:
        The validated ``Snapshot``.

    Raises:
        InvalidSnapshotError: On missing/malformed metadata or undecodable JSON.
    """
    document = unwrap_payload(payload)
    raw_metadata = document.get(METADATA_KEY)

    if not isinstance(raw_metadata, dict) or "tables" not in raw_metadata:
        raise InvalidSnapshotError("Invalid backup format. Missing metadata.")

    try:
        metadata = SnapshotMetadata.model_validate(raw_metadata)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidSnapshotError(
            f"Invalid backup format. Bad metadata: {problems}"
        ) from e

    dumps = {t: document[t] for t in metadata.tables if t in document}
    return Snapshot(metadata=metadata, dumps=dumps)


def load_snapshot_file(backup_path: str) -> str:
    """Read a backup file's text as UTF-8.

    Raises:
        InvalidSnapshotError: If the file does not exist or is not UTF-8.
    """
    path = Path(backup_path)
    if not path.exists():
        raise InvalidSnapshotError(f"Backup file not found: {backup_path}")
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise InvalidSnapshotError(
            f"Invalid backup format. Backup file is not UTF-8 text. Error: {e}"
        ) from e


def validate_backup(payload: Any, known_tables: list[str] | None = None) -> dict:
    """Check a snapshot without touching any database.

    This function is **sync** -- it only inspects the payload.

    Args:
        payload: Anything ``parse_snapshot`` accepts.
        known_tables: Registry table names; listed tables outside this
            set produce a warning.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        and ``warnings`` (list[str]).

    Example:
        report = validate_backup(Path("backup.json").read_text())
        if report["errors"]:
            raise ValueError("Backup is invalid")
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        document = unwrap_payload(payload)
        snapshot = parse_snapshot(document)
    except InvalidSnapshotError as e:
        errors.append(str(e))
        return {"valid": False, "errors": errors, "warnings": warnings}

    warnings.extend(metadata_warnings(document[METADATA_KEY]))
    known = set(known_tables) if known_tables is not None else None

    for table in snapshot.metadata.tables:
        if known is not None and table not in known:
            warnings.append(f"{table}: not a registered table, restored last")

        if table not in snapshot.dumps:
            warnings.append(f"{table}: listed in metadata but has no data, will be skipped")
            continue
        if not isinstance(snapshot.dumps[table], list):
            warnings.append(f"{table}: data is not a list, will be skipped")
            continue

        try:
            rows = snapshot.rows(table)
        except RowFormatError as e:
            errors.append(str(e))
            continue

        missing_pk = sum(1 for r in rows if "id" not in r)
        if missing_pk:
            warnings.append(f"{table}: {missing_pk} row(s) missing 'id' field")

    if snapshot.metadata.created_at is None:
        warnings.append("Missing metadata field: createdAt")

    valid = len(errors) == 0
    return {"valid": valid, "errors": errors, "warnings": warnings}
