"""Tests for snapshot building, parsing, file I/O, and validation.

Verifies the ``_metadata`` document format, every accepted transport
envelope, rejection of malformed payloads, and validate_backup's
error/warning split.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from club_backup.backup.models import METADATA_KEY, Snapshot
from club_backup.backup.snapshot import (
    InvalidSnapshotError,
    build_snapshot,
    default_backup_path,
    load_snapshot_file,
    parse_snapshot,
    save_snapshot,
    unwrap_payload,
    validate_backup,
)

CREATED_AT = datetime(2026, 10, 19, 8, 15, 30, 123000, tzinfo=timezone.utc)


# ------------------------------------------------------------------
# Helper: sample snapshot document
# ------------------------------------------------------------------


def _document() -> dict:
    return {
        "_metadata": {
            "version": "1.0",
            "createdAt": "2026-10-19T08:15:30+00:00",
            "tables": ["profiles", "clubs"],
        },
        "profiles": [{"id": "u1", "full_name": "Ana"}],
        "clubs": [{"id": "c1", "owner_id": "u1"}, {"id": "c2", "owner_id": "u1"}],
    }


# ------------------------------------------------------------------
# build_snapshot / to_document
# ------------------------------------------------------------------


class TestBuildSnapshot:
    """Tests for build_snapshot and the written document shape."""

    def test_metadata_lists_tables_and_counts(self):
        """Every dump is listed, including empty ones, with row counts."""
        snapshot = build_snapshot(
            {"profiles": [{"id": "u1"}], "clubs": []},
            failed_tables=["bank_accounts"],
            created_at=CREATED_AT,
        )

        assert snapshot.metadata.tables == ["profiles", "clubs"]
        assert snapshot.metadata.counts == {"profiles": 1, "clubs": 0}
        assert snapshot.metadata.failed_tables == ["bank_accounts"]
        assert snapshot.metadata.version == "1.0"
        assert snapshot.metadata.created_at == CREATED_AT.isoformat()

    def test_document_uses_camel_case_metadata(self):
        """The document carries _metadata with createdAt and one key per table."""
        document = build_snapshot({"clubs": [{"id": "c1"}]}, created_at=CREATED_AT).to_document()

        assert list(document) == [METADATA_KEY, "clubs"]
        metadata = document[METADATA_KEY]
        assert metadata["createdAt"] == CREATED_AT.isoformat()
        assert metadata["tables"] == ["clubs"]
        assert metadata["failedTables"] == []
        assert document["clubs"] == [{"id": "c1"}]

    def test_no_tables_raises(self):
        """A snapshot must list at least one table."""
        with pytest.raises(InvalidSnapshotError, match="no tables"):
            build_snapshot({})

    def test_to_json_round_trips_through_parse(self):
        """A written snapshot parses back to the same tables and rows."""
        original = build_snapshot({"clubs": [{"id": "c1", "name": "Judo"}]}, created_at=CREATED_AT)
        parsed = parse_snapshot(original.to_json())

        assert parsed.metadata.tables == ["clubs"]
        assert parsed.rows("clubs") == [{"id": "c1", "name": "Judo"}]
        assert parsed.metadata.created_at == CREATED_AT.isoformat()


# ------------------------------------------------------------------
# unwrap_payload / parse_snapshot
# ------------------------------------------------------------------


class TestParseSnapshot:
    """Tests for envelope handling and metadata validation."""

    def test_raw_document(self):
        """A dict with _metadata is used directly."""
        snapshot = parse_snapshot(_document())
        assert snapshot.metadata.tables == ["profiles", "clubs"]
        assert len(snapshot.rows("clubs")) == 2

    def test_json_string_and_bytes(self):
        """JSON text and bytes are decoded."""
        text = json.dumps(_document())
        assert parse_snapshot(text).metadata.tables == ["profiles", "clubs"]
        assert parse_snapshot(text.encode()).metadata.tables == ["profiles", "clubs"]

    def test_doubly_encoded_string(self):
        """A JSON string whose content is JSON text is decoded twice."""
        text = json.dumps(json.dumps(_document()))
        assert parse_snapshot(text).metadata.tables == ["profiles", "clubs"]

    def test_backup_envelope_with_object(self):
        """{"backup": document} is unwrapped."""
        assert unwrap_payload({"backup": _document()}) == _document()

    def test_backup_envelope_with_string(self):
        """{"backup": "<json>"} is unwrapped and decoded."""
        assert unwrap_payload({"backup": json.dumps(_document())}) == _document()

    def test_data_envelope_with_string(self):
        """{"data": "<json>"} is unwrapped and decoded."""
        assert unwrap_payload({"data": json.dumps(_document())}) == _document()

    def test_legacy_timestamp_key(self):
        """Older snapshots carry timestamp instead of createdAt."""
        document = _document()
        document["_metadata"] = {"version": "1.0", "timestamp": "2025-01-01T00:00:00Z", "tables": ["clubs"]}
        assert parse_snapshot(document).metadata.created_at == "2025-01-01T00:00:00Z"

    def test_informational_metadata_is_lax(self):
        """Wrong-typed version, createdAt, counts, failedTables do not fail parsing."""
        document = _document()
        document["_metadata"].update(
            {"version": 1, "createdAt": 1760832000, "counts": None, "failedTables": "clubs"}
        )

        metadata = parse_snapshot(document).metadata

        assert metadata.version == "1"
        assert metadata.created_at == "1760832000"
        assert metadata.counts == {}
        assert metadata.failed_tables == []
        assert metadata.tables == ["profiles", "clubs"]

    def test_counts_keeps_integer_entries_only(self):
        """Non-integer count entries are dropped."""
        document = _document()
        document["_metadata"]["counts"] = {"profiles": 1, "clubs": "two", "x": True}
        assert parse_snapshot(document).metadata.counts == {"profiles": 1}

    def test_unlisted_keys_dropped(self):
        """Top-level keys not in metadata.tables never reach the snapshot."""
        document = _document()
        document["secrets"] = [{"id": "x"}]
        assert "secrets" not in parse_snapshot(document).dumps

    def test_listed_table_without_data(self):
        """A listed table with no key parses to no rows."""
        document = _document()
        del document["clubs"]
        assert parse_snapshot(document).rows("clubs") == []

    @pytest.mark.parametrize(
        "payload, message",
        [
            (None, "No backup file provided"),
            ("", "No backup file provided"),
            ("{not json", "valid JSON backup file"),
            (b"\xff\xfe{", "not UTF-8"),
            ("[1, 2]", "Expected an object"),
            ({"clubs": []}, "Missing metadata"),
            ({"backup": {"clubs": []}}, "Missing metadata"),
            ({"_metadata": {"version": "1.0"}}, "Missing metadata"),
            ({"_metadata": "1.0"}, "Missing metadata"),
            ({"_metadata": {"tables": []}}, "Bad metadata"),
            ({"_metadata": {"tables": "clubs"}}, "Bad metadata"),
        ],
    )
    def test_invalid_payloads(self, payload, message):
        """Malformed payloads raise InvalidSnapshotError with a readable message."""
        with pytest.raises(InvalidSnapshotError, match=message):
            parse_snapshot(payload)


# ------------------------------------------------------------------
# File I/O
# ------------------------------------------------------------------


class TestSnapshotFiles:
    """Tests for save_snapshot, load_snapshot_file, and default paths."""

    def test_save_and_load(self, tmp_path):
        """A saved snapshot loads back as indented JSON text."""
        snapshot = build_snapshot({"clubs": [{"id": "c1"}]}, created_at=CREATED_AT)
        output = tmp_path / "nested" / "backup.json"

        path = save_snapshot(snapshot, str(output))

        assert path == str(output)
        text = load_snapshot_file(path)
        assert json.loads(text)["clubs"] == [{"id": "c1"}]
        assert "\n  " in text

    def test_default_path_is_file_safe(self, tmp_path, monkeypatch):
        """The default file name replaces ':' and '.' in the timestamp."""
        monkeypatch.chdir(tmp_path)
        path = default_backup_path(CREATED_AT)

        assert path.parent == tmp_path / "backups"
        assert path.name == "database-backup-2026-10-19T08-15-30-123000+00-00.json"

    def test_save_without_path_uses_backups_dir(self, tmp_path, monkeypatch):
        """save_snapshot creates ./backups when no path is given."""
        monkeypatch.chdir(tmp_path)
        path = Path(save_snapshot(build_snapshot({"clubs": []})))

        assert path.parent == tmp_path / "backups"
        assert path.name.startswith("database-backup-")

    def test_load_non_utf8_file(self, tmp_path):
        """A file that is not UTF-8 raises InvalidSnapshotError."""
        path = tmp_path / "backup.json"
        path.write_bytes(b"\xff\xfe{")
        with pytest.raises(InvalidSnapshotError, match="not UTF-8"):
            load_snapshot_file(str(path))

    def test_load_missing_file(self, tmp_path):
        """A missing file raises InvalidSnapshotError."""
        with pytest.raises(InvalidSnapshotError, match="not found"):
            load_snapshot_file(str(tmp_path / "missing.json"))


# ------------------------------------------------------------------
# validate_backup
# ------------------------------------------------------------------


class TestValidateBackup:
    """Tests for validate_backup (sync, no database)."""

    def test_valid_document(self):
        """A well-formed document has no errors or warnings."""
        result = validate_backup(_document(), known_tables=["profiles", "clubs"])
        assert result == {"valid": True, "errors": [], "warnings": []}

    def test_invalid_document_is_an_error(self):
        """A payload that cannot parse is invalid."""
        result = validate_backup({"clubs": []})
        assert result["valid"] is False
        assert "Missing metadata" in result["errors"][0]

    def test_non_object_row_is_an_error(self):
        """A table list holding a non-object makes the backup invalid."""
        document = _document()
        document["clubs"] = [{"id": "c1"}, 42]
        result = validate_backup(document)
        assert result["valid"] is False
        assert "clubs row 1 is int" in result["errors"][0]

    def test_warnings_do_not_invalidate(self):
        """Unknown tables, missing data, missing ids, and no createdAt only warn."""
        document = {
            "_metadata": {"tables": ["profiles", "clubs", "audit_log", "club_members"]},
            "profiles": [{"full_name": "Ana"}],
            "clubs": {"id": "c1"},
            "audit_log": [],
        }
        result = validate_backup(document, known_tables=["profiles", "clubs", "club_members"])

        assert result["valid"] is True
        assert result["errors"] == []
        warnings = "\n".join(result["warnings"])
        assert "audit_log: not a registered table" in warnings
        assert "club_members: listed in metadata but has no data" in warnings
        assert "clubs: data is not a list" in warnings
        assert "profiles: 1 row(s) missing 'id'" in warnings
        assert "createdAt" in warnings

    def test_odd_metadata_fields_warn(self):
        """Coerced or dropped metadata fields are warnings, not errors."""
        document = _document()
        document["_metadata"].update({"version": 1, "counts": None, "failedTables": ["a", 2]})

        result = validate_backup(document, known_tables=["profiles", "clubs"])

        assert result["valid"] is True
        warnings = "\n".join(result["warnings"])
        assert "version is int, expected string" in warnings
        assert "counts is NoneType, expected object" in warnings
        assert "failedTables has non-string entries" in warnings

    def test_parsed_snapshot_model(self):
        """parse_snapshot returns a Snapshot model."""
        assert isinstance(parse_snapshot(_document()), Snapshot)
