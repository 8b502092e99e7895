"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that every store adapter must
implement.  Backup and restore only need three capabilities from the
store: read every row of a table, clear a table, and insert rows into a
table.  All methods are ``async def``.

Usage:
    from club_backup.adapters.base import DatabaseClient

    async def copy_table(src: DatabaseClient, dst: DatabaseClient) -> None:
        rows = await src.select("clubs", "*")
        await dst.delete_all("clubs")
        await dst.insert_many("clubs", rows)
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Store interface consumed by the backup and restore orchestrators.

    Implementations must raise on failure rather than return error
    values -- the orchestrators catch and record exceptions per table.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names, or ``"*"``.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select(
                "user_roles",
                "role",
                filters={"user_id": "u1", "role": "super_admin"},
            )
        """
        ...

    async def insert_many(self, table: str, rows: list[dict]) -> int:
        """Insert a batch of rows in a single request.

        The batch is all-or-nothing: either every row lands or the call
        raises and none do.

        Args:
            table: Table name.
            rows: Row dicts, inserted in list order.

        Returns:
            Number of rows inserted.

        Raises:
            Exception: On constraint violation or any backend error.
        """
        ...

    async def delete_all(self, table: str) -> None:
        """Delete every row of a table.

        Adapters use the store's native delete-all primitive.

        Args:
            table: Table name.
        """
        ...

    async def close(self) -> None:
        """Close the connection and release resources."""
        ...
