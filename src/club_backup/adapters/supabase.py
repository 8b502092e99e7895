"""Supabase (PostgREST) adapter for projects without direct database access.

Talks to the project's REST API through ``supabase``'s async client.
Give it the service-role key: backup must read every row and restore
must write them, so row-level security cannot apply.  The client is
created on first use.

Usage:
    from club_backup.adapters.supabase import AsyncSupabaseAdapter

    adapter = AsyncSupabaseAdapter(url="https://xyzproject.supabase.co", key="eyJ...")
    rows = await adapter.select("clubs", "*")
    await adapter.close()
"""

import asyncio
from typing import Any

from supabase import AsyncClient, acreate_client

# Nil UUID: never a real primary key, so ``pk <> NIL_UUID`` matches every row.
NIL_UUID = "00000000-0000-0000-0000-000000000000"


class AsyncSupabaseAdapter:
    """``DatabaseClient`` over PostgREST.

    Args:
        url: Supabase project URL.
        key: Service-role key.
        pk: Primary key column used by the ``delete_all`` filter.
        page_size: Rows fetched per request in ``select``; PostgREST
            caps unbounded selects (1000 rows by default).
    """

    def __init__(self, url: str, key: str, pk: str = "id", page_size: int = 1000) -> None:
        self._url = url
        self._key = key
        self._pk = pk
        self._page_size = page_size
        self._client: AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows page by page using ``range()`` until a short page.

        Pages are ordered by ``order_by``, or by the primary key when none
        is given, so consecutive ranges neither overlap nor skip rows.
        """
        client = await self._get_client()
        rows: list[dict] = []
        start = 0

        while True:
            query = client.table(table).select(columns)

            if filters:
                for key, value in filters.items():
                    query = query.eq(key, value)

            query = query.order(order_by or self._pk)

            result = await query.range(start, start + self._page_size - 1).execute()
            page = result.data or []
            rows.extend(page)

            if len(page) < self._page_size:
                return rows
            start += self._page_size

    async def insert_many(self, table: str, rows: list[dict]) -> int:
        """Insert a batch of rows in one PostgREST request."""
        if not rows:
            return 0
        client = await self._get_client()
        await client.table(table).insert(rows).execute()
        return len(rows)

    async def delete_all(self, table: str) -> None:
        """Delete every row.

        PostgREST rejects a ``DELETE`` without a filter, so this filters
        on ``pk <> NIL_UUID``, which every real row satisfies.
        """
        client = await self._get_client()
        await client.table(table).delete().neq(self._pk, NIL_UUID).execute()

    async def close(self) -> None:
        """Close the Supabase async client.

        If the client was never initialized (no calls were made),
        this is a no-op.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
