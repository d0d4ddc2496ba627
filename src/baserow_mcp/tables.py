"""CRUD primitives over allow-listed Baserow tables.

Every method resolves the semantic table name through the allow-list before
touching the client, so a denied table never produces an outbound request.
"""

from __future__ import annotations

import logging
from typing import Any

from baserow_mcp.allowlist import AllowList, TableInfo
from baserow_mcp.client import BaserowClient, FilterMode, FilterValue

logger = logging.getLogger(__name__)


class TablesService:
    """Table operations guarded by the allow-list."""

    def __init__(self, allow_list: AllowList, client: BaserowClient) -> None:
        self._allow_list = allow_list
        self._client = client

    @property
    def allow_list(self) -> AllowList:
        return self._allow_list

    def list_tables(self) -> list[TableInfo]:
        return self._allow_list.tables()

    async def list_records(
        self,
        table: str,
        filters: dict[str, FilterValue] | None = None,
        page: int | None = None,
        size: int | None = None,
        *,
        mode: FilterMode | None = None,
    ) -> dict[str, Any]:
        """Return one page of records: ``{count, next, previous, results}``."""
        table_id = self._allow_list.resolve(table)
        logger.info(
            "Reading records from %s (ID: %d) filters=%s page=%s size=%s",
            table,
            table_id,
            filters,
            page,
            size,
        )
        response = await self._client.list_rows(
            table_id, filters=filters, page=page, size=size, mode=mode
        )
        logger.info(
            "Retrieved %d of %s total records",
            len(response.get("results", [])),
            response.get("count"),
        )
        return response

    async def get_record(self, table: str, record_id: int) -> dict[str, Any]:
        table_id = self._allow_list.resolve(table)
        logger.info("Getting record %d from %s (ID: %d)", record_id, table, table_id)
        return await self._client.get_row(table_id, record_id)

    async def create_record(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        table_id = self._allow_list.resolve(table)
        logger.info("Creating record in %s (ID: %d)", table, table_id)
        logger.debug("Record data: %s", data)
        record = await self._client.create_row(table_id, data)
        logger.info("Created record with ID %s", record.get("id"))
        return record

    async def update_record(
        self, table: str, record_id: int, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a partial update: only the supplied fields change."""
        table_id = self._allow_list.resolve(table)
        logger.info("Updating record %d in %s (ID: %d)", record_id, table, table_id)
        logger.debug("Update data: %s", data)
        return await self._client.update_row(table_id, record_id, data)

    async def delete_record(self, table: str, record_id: int) -> None:
        """Delete a record. Irreversible."""
        table_id = self._allow_list.resolve(table)
        logger.info("Deleting record %d from %s (ID: %d)", record_id, table, table_id)
        await self._client.delete_row(table_id, record_id)
