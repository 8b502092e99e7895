"""Tests for the database adapters.

Verifies the in-memory adapter's foreign key handling, and the SQL
the PostgreSQL adapter sends (engine mocked, no database needed).
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest

from club_backup.adapters.base import DatabaseClient
from club_backup.adapters.memory import InMemoryAdapter, IntegrityError
from club_backup.adapters.postgres import AsyncPostgresAdapter, normalize_url, quote_ident


# ------------------------------------------------------------------
# InMemoryAdapter
# ------------------------------------------------------------------


def _club_store(on_delete: str = "cascade") -> InMemoryAdapter:
    return InMemoryAdapter(
        {
            "profiles": [{"id": "u1"}, {"id": "u2"}],
            "clubs": [{"id": "c1", "owner_id": "u1"}],
            "club_members": [{"id": "m1", "club_id": "c1", "user_id": "u2"}],
        },
        foreign_keys={
            "clubs": {"owner_id": "profiles"},
            "club_members": {"club_id": "clubs", "user_id": "profiles"},
        },
        on_delete=on_delete,
    )


class TestInMemoryAdapter:
    """Tests for InMemoryAdapter."""

    def test_implements_protocol_methods(self):
        """InMemoryAdapter has every DatabaseClient method."""
        for name in ("select", "insert_many", "delete_all", "close"):
            assert callable(getattr(InMemoryAdapter(), name))
            assert hasattr(DatabaseClient, name)

    async def test_select_filters_and_projects(self):
        """Filters match on equality; columns project the result."""
        store = _club_store()
        rows = await store.select("club_members", "id, club_id", filters={"user_id": "u2"})
        assert rows == [{"id": "m1", "club_id": "c1"}]

    async def test_select_returns_copies(self):
        """Mutating a selected row does not change the store."""
        store = _club_store()
        (row,) = await store.select("clubs", "*")
        row["owner_id"] = "u2"
        assert store.tables["clubs"][0]["owner_id"] == "u1"

    async def test_select_order_by(self):
        """order_by sorts ascending with NULLs last."""
        store = InMemoryAdapter({"clubs": [{"id": "b"}, {"id": None}, {"id": "a"}]})
        rows = await store.select("clubs", "id", order_by="id")
        assert [r["id"] for r in rows] == ["a", "b", None]

    async def test_select_unknown_table_raises(self):
        """Selecting a missing table fails like a missing relation."""
        with pytest.raises(KeyError, match="audit_log"):
            await InMemoryAdapter().select("audit_log", "*")

    async def test_insert_checks_parent_rows(self):
        """A child row needs its parent to exist."""
        store = _club_store()
        with pytest.raises(IntegrityError, match="owner_id -> profiles"):
            await store.insert_many("clubs", [{"id": "c2", "owner_id": "nobody"}])

    async def test_insert_batch_is_all_or_nothing(self):
        """A bad row rejects the whole batch."""
        store = _club_store()
        with pytest.raises(IntegrityError, match="duplicate key"):
            await store.insert_many("profiles", [{"id": "u3"}, {"id": "u1"}])
        assert [r["id"] for r in store.tables["profiles"]] == ["u1", "u2"]

    async def test_self_reference_within_batch(self):
        """A row may reference another row in the same batch."""
        store = InMemoryAdapter(foreign_keys={"posts": {"parent_id": "posts"}})
        inserted = await store.insert_many(
            "posts", [{"id": "p1", "parent_id": None}, {"id": "p2", "parent_id": "p1"}]
        )
        assert inserted == 2

    async def test_delete_cascades_to_children(self):
        """Clearing a parent removes referencing rows."""
        store = _club_store()
        await store.delete_all("profiles")
        assert store.tables == {"profiles": [], "clubs": [], "club_members": []}

    async def test_delete_restrict_raises(self):
        """With on_delete='restrict', referenced rows block the delete."""
        store = _club_store(on_delete="restrict")
        with pytest.raises(IntegrityError, match="violates foreign key"):
            await store.delete_all("clubs")
        assert len(store.tables["clubs"]) == 1

    async def test_calls_logged(self):
        """Every operation is recorded with its row count."""
        store = _club_store()
        await store.select("profiles", "*")
        await store.delete_all("club_members")
        await store.insert_many("club_members", [{"id": "m2", "club_id": "c1", "user_id": "u1"}])
        await store.close()

        assert store.calls == [
            ("select", "profiles", 2),
            ("delete", "club_members", 1),
            ("insert", "club_members", 1),
        ]
        assert store.closed is True


# ------------------------------------------------------------------
# AsyncPostgresAdapter
# ------------------------------------------------------------------


def _mock_engine(result: MagicMock | None = None) -> tuple[MagicMock, AsyncMock]:
    """Engine whose connect()/begin() yield the same mocked connection."""
    conn = AsyncMock()
    conn.execute.return_value = result or MagicMock()
    engine = MagicMock()
    engine.connect.return_value.__aenter__.return_value = conn
    engine.begin.return_value.__aenter__.return_value = conn
    engine.dispose = AsyncMock()
    return engine, conn


def _make_postgres(engine: MagicMock) -> AsyncPostgresAdapter:
    with patch("club_backup.adapters.postgres.create_async_engine_pooled") as mock_create:
        mock_create.return_value = engine
        return AsyncPostgresAdapter("postgresql://u:p@localhost/clubs")


class TestPostgresHelpers:
    """Tests for URL and identifier helpers."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ],
    )
    def test_normalize_url(self, url, expected):
        """Every accepted scheme ends up on asyncpg."""
        assert normalize_url(url) == expected

    def test_quote_ident(self):
        """Plain identifiers are double-quoted."""
        assert quote_ident("club_members") == '"club_members"'

    @pytest.mark.parametrize("name", ['clubs"; DROP TABLE profiles; --', "1clubs", "a b", ""])
    def test_quote_ident_rejects_unsafe_names(self, name):
        """Anything but a plain identifier is refused."""
        with pytest.raises(ValueError, match="Invalid SQL identifier"):
            quote_ident(name)

    def test_engine_gets_asyncpg_url(self):
        """The adapter normalizes the URL before creating the engine."""
        with patch("club_backup.adapters.postgres.create_async_engine_pooled") as mock_create:
            mock_create.return_value = MagicMock()
            AsyncPostgresAdapter("postgres://u:p@localhost/clubs", pool_size=2)

        mock_create.assert_called_once_with("postgresql+asyncpg://u:p@localhost/clubs", pool_size=2)


class TestAsyncPostgresAdapter:
    """Tests for AsyncPostgresAdapter SQL generation."""

    async def test_select_returns_driver_values(self):
        """Rows come back as dicts of driver values, in column order."""
        row = {
            "id": UUID("7270cadc-1c5f-4a8a-9d6b-0c4e0f7c3b11"),
            "created_at": datetime(2026, 1, 2, 3, 4, tzinfo=timezone.utc),
            "fee": Decimal("30.00"),
        }
        result = MagicMock()
        result.mappings.return_value = [row]
        engine, conn = _mock_engine(result)

        rows = await _make_postgres(engine).select("clubs", "*")

        assert rows == [row]
        assert list(rows[0]) == ["id", "created_at", "fee"]
        assert str(conn.execute.call_args[0][0]) == 'SELECT * FROM "clubs"'

    async def test_select_with_filters(self):
        """Filters become bound parameters."""
        result = MagicMock()
        result.mappings.return_value = [{"role": "super_admin"}]
        engine, conn = _mock_engine(result)

        rows = await _make_postgres(engine).select(
            "user_roles", "role", filters={"user_id": "u1", "role": "super_admin"}
        )

        assert rows == [{"role": "super_admin"}]

        query, params = conn.execute.call_args[0]
        assert str(query) == (
            'SELECT "role" FROM "user_roles" WHERE "user_id" = :p_0 AND "role" = :p_1'
        )
        assert params == {"p_0": "u1", "p_1": "super_admin"}

    async def test_insert_many_single_statement(self):
        """A batch is one INSERT ... SELECT over jsonb_populate_recordset."""
        engine, conn = _mock_engine()
        rows = [{"id": "c1", "name": "Judo"}, {"id": "c2", "owner_id": "u1"}]

        inserted = await _make_postgres(engine).insert_many("clubs", rows)

        assert inserted == 2
        conn.execute.assert_awaited_once()
        query, params = conn.execute.call_args[0]
        sql = str(query)
        assert sql.startswith('INSERT INTO "clubs" ("id", "name", "owner_id") SELECT')
        assert 'jsonb_populate_recordset(NULL::"clubs", CAST(:rows AS jsonb))' in sql
        assert '"id": "c2"' in params["rows"]
        engine.begin.assert_called_once()

    async def test_select_order_by(self):
        """order_by appends a quoted ORDER BY."""
        engine, conn = _mock_engine(MagicMock(**{"mappings.return_value": []}))

        await _make_postgres(engine).select("clubs", "id, name", order_by="name")

        assert str(conn.execute.call_args[0][0]) == (
            'SELECT "id", "name" FROM "clubs" ORDER BY "name"'
        )

    async def test_insert_many_empty_batch(self):
        """An empty batch sends nothing."""
        engine, conn = _mock_engine()
        assert await _make_postgres(engine).insert_many("clubs", []) == 0
        conn.execute.assert_not_called()

    async def test_delete_all(self):
        """delete_all issues an unfiltered DELETE in a transaction."""
        engine, conn = _mock_engine()

        await _make_postgres(engine).delete_all("club_members")

        assert str(conn.execute.call_args[0][0]) == 'DELETE FROM "club_members"'
        engine.begin.assert_called_once()

    async def test_close_disposes_engine(self):
        """close() disposes the pool."""
        engine, _ = _mock_engine()
        await _make_postgres(engine).close()
        engine.dispose.assert_awaited_once()
