"""MCP tools for the manufacturing workflows.

Tools covered:
  get_bom       -> Bill of Materials for a Finished Good (by ID or iSKU)
  search_parts  -> Part IDs by part name
  process_bpr   -> record a Batch Production Record and close its MO
"""

from __future__ import annotations

from typing import Annotated, Any

from mcp.server.fastmcp import Context
from pydantic import Field

from baserow_mcp.app import mcp
from baserow_mcp.tools._base import drop_unset, run_tool


@mcp.tool()
async def get_bom(
    ctx: Context,
    fg_id: Annotated[
        int | None,
        Field(default=None, description="The Finished Goods ID to get the BOM for."),
    ] = None,
    isku: Annotated[
        str | None,
        Field(
            default=None,
            description='Alternative: the iSKU (e.g. "TN-Liquid-Stevia-Drops-8oz").',
        ),
    ] = None,
) -> dict[str, Any]:
    """Get the Bill of Materials (BOM) for a Finished Good.

    Returns every part required to make the product with its Part ID,
    quantity per unit, role, and ``mapping_id``.  Use ``mapping_id`` as
    ``bom_id`` when calling process_bpr.
    """
    return await run_tool(ctx, "get_bom", drop_unset(fg_id=fg_id, isku=isku))


@mcp.tool()
async def search_parts(
    ctx: Context,
    search_terms: Annotated[
        list[str],
        Field(
            description=(
                "Part names to search for (e.g. "
                '["PCH-4oz-Stndup-WH-Matt", "LABL-NS-3.75x3-Stevia-Powder-4oz-Front"]).'
            )
        ),
    ],
) -> dict[str, Any]:
    """Search the parts table for Part IDs by name.

    Works for all parts, including ones not yet in any BOM.  Exact
    (case-insensitive) matches win; otherwise the first partial match is used.
    """
    return await run_tool(ctx, "search_parts", {"search_terms": search_terms})


@mcp.tool()
async def process_bpr(
    ctx: Context,
    mo_number: Annotated[str, Field(description='The MO Number (e.g. "MO-121525-11").')],
    completion_date: Annotated[
        str, Field(description="The completion date in YYYY-MM-DD format.")
    ],
    gross_produced: Annotated[str, Field(description="The gross quantity produced.")],
    parts_usage: Annotated[
        list[dict[str, Any]],
        Field(
            description=(
                "Parts used in production. Each item: bom_id (int, required; "
                "mapping_id from get_bom), quantity (number, required), and "
                "optionally lot_id (int) or lot_number (Internal Lot Number), "
                "label_id (int) or label_code (label Part BOM ID), "
                "waste (number), notes (string)."
            )
        ),
    ],
    entered_by: Annotated[
        str | None,
        Field(default=None, description="Who entered this data."),
    ] = None,
) -> dict[str, Any]:
    """Process a complete BPR (Batch Production Record) in one operation.

    1. Find the Manufacturing Order by MO Number.
    2. Look up Part and Finished Good IDs from the BOM mapping IDs.
    3. Resolve lot numbers and label codes.
    4. Create one mo_parts_usage record per part.
    5. Close the MO with the Actual-Usage deduction method.

    Not transactional: if a step fails, records already created remain and
    their IDs are listed in the error details.
    """
    result = await run_tool(
        ctx,
        "process_bpr",
        drop_unset(
            mo_number=mo_number,
            completion_date=completion_date,
            gross_produced=gross_produced,
            parts_usage=parts_usage,
            entered_by=entered_by,
        ),
    )
    await ctx.info(result["data"]["summary"])
    return result
