"""Tests for baserow_mcp.tools.records.

Covers list_tables, read, create, update, delete and batch_create through
the real ToolHandler, including ToolError propagation and ctx logging.
"""

from __future__ import annotations

import json

import pytest

from mcp.server.fastmcp.exceptions import ToolError
from baserow_mcp.tools._base import drop_unset, get_handler
from baserow_mcp.tools.records import (
    batch_create,
    create,
    delete,
    list_tables,
    read,
    update,
)


def _error_of(exc_info: pytest.ExceptionInfo) -> dict:
    return json.loads(str(exc_info.value))["error"]


class TestBase:
    def test_get_handler(self, mock_ctx, handler):
        assert get_handler(mock_ctx) is handler

    def test_drop_unset(self):
        assert drop_unset(a=1, b=None, c=0) == {"a": 1, "c": 0}


class TestListTables:
    async def test_returns_envelope(self, mock_ctx):
        result = await list_tables(mock_ctx)
        assert result["success"] is True
        assert len(result["data"]["tables"]) == 9


class TestRead:
    async def test_returns_records_and_metadata(self, mock_ctx, baserow):
        baserow.seed("finished_goods", [{"id": 1, "iSKU": "TN-Stevia-Powder-4oz"}])
        result = await read(mock_ctx, table="finished_goods")
        assert result["data"]["results"] == [{"id": 1, "iSKU": "TN-Stevia-Powder-4oz"}]
        assert result["metadata"]["count"] == 1

    async def test_omitted_arguments_not_forwarded(self, mock_ctx, baserow):
        """Arguments left at None are not sent to the handler."""
        await read(mock_ctx, table="parts")
        payload = baserow.calls[0][2]
        assert payload["filters"] is None
        assert payload["page"] is None

    async def test_unauthorized_table_raises_tool_error(self, mock_ctx, baserow):
        with pytest.raises(ToolError) as exc_info:
            await read(mock_ctx, table="users")
        assert _error_of(exc_info)["code"] == "UNAUTHORIZED_TABLE_ACCESS"
        mock_ctx.error.assert_awaited_once()
        assert baserow.calls == []

    async def test_invalid_size_raises_tool_error(self, mock_ctx):
        with pytest.raises(ToolError) as exc_info:
            await read(mock_ctx, table="parts", size=1000)
        assert _error_of(exc_info)["code"] == "VALIDATION_ERROR"


class TestCreate:
    async def test_creates_and_logs(self, mock_ctx, baserow):
        result = await create(mock_ctx, table="cycle_counts", data={"Counted Qty": 4})
        assert result["data"]["Counted Qty"] == 4
        mock_ctx.info.assert_awaited_once()
        assert "cycle_counts" in mock_ctx.info.call_args.args[0]
        assert len(baserow.table_rows("cycle_counts")) == 1

    async def test_api_error_raises_tool_error(self, mock_ctx):
        """A failed write raises ToolError and skips the ctx.info report."""
        with pytest.raises(ToolError) as exc_info:
            await update(mock_ctx, table="parts", record_id=12345, data={"Cost": "1"})
        error = _error_of(exc_info)
        assert error["code"] == "BASEROW_API_ERROR"
        assert error["details"]["status_code"] == 404
        mock_ctx.info.assert_not_awaited()


class TestUpdateDelete:
    async def test_update(self, mock_ctx, baserow):
        baserow.seed("parts", [{"id": 3, "BOM ID": "RM-3"}])
        result = await update(mock_ctx, table="parts", record_id=3, data={"BOM ID": "RM-3b"})
        assert result["data"]["BOM ID"] == "RM-3b"

    async def test_delete(self, mock_ctx, baserow):
        baserow.seed("parts", [{"id": 3}])
        result = await delete(mock_ctx, table="parts", record_id=3)
        assert result["data"] == {"deleted": True, "record_id": 3}
        assert baserow.table_rows("parts") == []


class TestBatchCreate:
    async def test_batch_create(self, mock_ctx):
        result = await batch_create(
            mock_ctx, table="parts", records=[{"BOM ID": f"P-{i}"} for i in range(12)]
        )
        assert result["data"]["created"] == 12
        assert "12 records created in parts" == mock_ctx.info.call_args.args[0]

    async def test_too_many_records(self, mock_ctx, baserow):
        with pytest.raises(ToolError) as exc_info:
            await batch_create(mock_ctx, table="parts", records=[{}] * 51)
        assert _error_of(exc_info)["code"] == "VALIDATION_ERROR"
        assert baserow.calls == []
