"""MCP tools for generic record access on allow-listed tables.

Tools covered:
  list_tables   -> configured table names, IDs, and descriptions
  read          -> GET    /api/database/rows/table/{id}/
  create        -> POST   /api/database/rows/table/{id}/
  update        -> PATCH  /api/database/rows/table/{id}/{row_id}/
  delete        -> DELETE /api/database/rows/table/{id}/{row_id}/
  batch_create  -> POST   /api/database/rows/table/{id}/  (chunks of 10)
"""

from __future__ import annotations

from typing import Annotated, Any

from mcp.server.fastmcp import Context
from pydantic import Field

from baserow_mcp.allowlist import TABLE_NAMES
from baserow_mcp.app import mcp
from baserow_mcp.tools._base import drop_unset, run_tool

_TABLE_DESCRIPTION = f"Table name. Must be one of: {', '.join(TABLE_NAMES)}."


@mcp.tool()
async def list_tables(ctx: Context) -> dict[str, Any]:
    """List the Baserow tables this server can access.

    Returns each table's name, Baserow ID, and description.
    """
    return await run_tool(ctx, "list_tables", {})


@mcp.tool()
async def read(
    ctx: Context,
    table: Annotated[str, Field(description=_TABLE_DESCRIPTION)],
    filters: Annotated[
        dict[str, Any] | None,
        Field(
            default=None,
            description=(
                "Optional filters. Keys are field names, values are matched "
                "against the field (string, number, boolean, or null)."
            ),
        ),
    ] = None,
    page: Annotated[
        int | None,
        Field(default=None, description="Page number (1-based). Default: 1."),
    ] = None,
    size: Annotated[
        int | None,
        Field(
            default=None,
            description="Records per page (max 200; the server may return fewer).",
        ),
    ] = None,
) -> dict[str, Any]:
    """Read records from a table with optional filtering and pagination.

    Large link fields are summarised and long pages are trimmed; a ``_note``
    in the result says when data was left out.
    """
    return await run_tool(
        ctx, "read", drop_unset(table=table, filters=filters, page=page, size=size)
    )


@mcp.tool()
async def create(
    ctx: Context,
    table: Annotated[str, Field(description=_TABLE_DESCRIPTION)],
    data: Annotated[
        dict[str, Any],
        Field(description="Record data. Keys are field names, values the field values."),
    ],
) -> dict[str, Any]:
    """Create a new record in a table and return it."""
    result = await run_tool(ctx, "create", {"table": table, "data": data})
    await ctx.info(f"Record created in {table} with id={result['data'].get('id')}")
    return result


@mcp.tool()
async def update(
    ctx: Context,
    table: Annotated[str, Field(description=_TABLE_DESCRIPTION)],
    record_id: Annotated[int, Field(description="ID of the record to update.")],
    data: Annotated[
        dict[str, Any],
        Field(description="Fields to update (only provided fields are changed)."),
    ],
) -> dict[str, Any]:
    """Update an existing record.

    Only supply the fields you want to change; omitted fields remain unchanged.
    """
    result = await run_tool(
        ctx, "update", {"table": table, "record_id": record_id, "data": data}
    )
    await ctx.info(f"Record {record_id} in {table} updated")
    return result


@mcp.tool()
async def delete(
    ctx: Context,
    table: Annotated[str, Field(description=_TABLE_DESCRIPTION)],
    record_id: Annotated[int, Field(description="ID of the record to delete.")],
) -> dict[str, Any]:
    """Delete a record. This is permanent and cannot be undone."""
    result = await run_tool(ctx, "delete", {"table": table, "record_id": record_id})
    await ctx.info(f"Record {record_id} in {table} deleted")
    return result


@mcp.tool()
async def batch_create(
    ctx: Context,
    table: Annotated[str, Field(description=_TABLE_DESCRIPTION)],
    records: Annotated[
        list[dict[str, Any]],
        Field(description="Record data objects to create (maximum 50)."),
    ],
) -> dict[str, Any]:
    """Create up to 50 records in one call.

    Records are created 10 at a time.  If one fails, records already created
    stay in the table and their IDs are listed in the error details.
    """
    result = await run_tool(ctx, "batch_create", {"table": table, "records": records})
    await ctx.info(f"{result['data']['created']} records created in {table}")
    return result
