"""In-memory database adapter for tests and local dry runs.

Implements the ``DatabaseClient`` protocol over plain dicts so backup
and restore can be exercised without a database.

Invariants:
    - All data is lost on process exit
    - ``insert_many`` is all-or-nothing per batch, like the real adapters
    - Optional foreign keys are checked on insert and cascade (or
      restrict) on delete

Usage:
    from club_backup.adapters.memory import InMemoryAdapter

    store = InMemoryAdapter(
        {"clubs": [{"id": "c1"}]},
        foreign_keys={"club_members": {"club_id": "clubs"}},
    )
    await store.insert_many("club_members", [{"id": "m1", "club_id": "c1"}])
"""

from __future__ import annotations

import copy
from typing import Any


class IntegrityError(Exception):
    """Raised when a write would break a declared foreign key."""

    pass


class InMemoryAdapter:
    """Dict-backed implementation of ``DatabaseClient``.

    Attributes:
        tables: Table name -> list of row dicts.
        calls: Log of ``(operation, table, row_count)`` tuples in call
            order, for asserting on what a backup or restore did.

    Args:
        tables: Initial contents.  Deep-copied.
        foreign_keys: ``{child_table: {fk_column: parent_table}}``.
            Parent rows are matched on ``id``.
        on_delete: ``"cascade"`` (default, matching the platform schema's
            ``ON DELETE CASCADE`` keys) or ``"restrict"``.
    """

    def __init__(
        self,
        tables: dict[str, list[dict]] | None = None,
        foreign_keys: dict[str, dict[str, str]] | None = None,
        on_delete: str = "cascade",
    ) -> None:
        self.tables: dict[str, list[dict]] = copy.deepcopy(tables or {})
        self.foreign_keys: dict[str, dict[str, str]] = foreign_keys or {}
        self.on_delete = on_delete
        self.calls: list[tuple[str, str, int]] = []
        self.closed = False

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Return copies of matching rows, projected to ``columns``."""
        if table not in self.tables:
            raise KeyError(f"relation \"{table}\" does not exist")

        rows = [
            r for r in self.tables[table]
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if order_by:
            rows = sorted(rows, key=lambda r: (r.get(order_by) is None, r.get(order_by)))

        self.calls.append(("select", table, len(rows)))

        if columns.strip() == "*":
            return [dict(r) for r in rows]
        wanted = [c.strip() for c in columns.split(",")]
        return [{c: r.get(c) for c in wanted} for r in rows]

    async def insert_many(self, table: str, rows: list[dict]) -> int:
        """Append rows after checking foreign keys for the whole batch."""
        self.calls.append(("insert", table, len(rows)))

        existing = self.tables.setdefault(table, [])
        seen_ids = {r.get("id") for r in existing if "id" in r}
        for row in rows:
            row_id = row.get("id")
            if row_id is not None and row_id in seen_ids:
                raise IntegrityError(
                    f"duplicate key value violates unique constraint on {table}.id: {row_id}"
                )
            if row_id is not None:
                seen_ids.add(row_id)
            self._check_parents(table, row, pending=rows)

        existing.extend(copy.deepcopy(rows))
        return len(rows)

    async def delete_all(self, table: str) -> None:
        """Clear a table, then apply the ``on_delete`` rule to referencing rows."""
        self.calls.append(("delete", table, len(self.tables.get(table, []))))
        self._delete_ids(table, {r.get("id") for r in self.tables.get(table, [])})

    async def close(self) -> None:
        self.closed = True

    def _delete_ids(self, table: str, doomed: set) -> None:
        for child, refs in self.foreign_keys.items():
            for column, parent in refs.items():
                if parent != table:
                    continue
                hits = {
                    r.get("id") for r in self.tables.get(child, [])
                    if r.get(column) is not None and r.get(column) in doomed
                }
                if not hits or child == table:
                    continue
                if self.on_delete == "restrict":
                    raise IntegrityError(
                        f"delete on {table} violates foreign key {child}.{column}"
                    )
                self._delete_ids(child, hits)

        self.tables[table] = [
            r for r in self.tables.get(table, []) if r.get("id") not in doomed
        ]

    def _check_parents(self, table: str, row: dict, pending: list[dict]) -> None:
        for column, parent in self.foreign_keys.get(table, {}).items():
            ref = row.get(column)
            if ref is None:
                continue
            parent_rows = self.tables.get(parent, [])
            if parent == table:
                parent_rows = parent_rows + pending
            if not any(p.get("id") == ref for p in parent_rows):
                raise IntegrityError(
                    f"insert on {table} violates foreign key {column} -> {parent}: {ref}"
                )
