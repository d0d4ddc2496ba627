"""Shared helpers for Baserow tool modules.

  - ``get_handler`` extracts the shared ToolHandler from the MCP lifespan context
  - ``run_tool`` forwards a call to the handler and turns error envelopes
    into ``ToolError`` so MCP clients see ``isError: true``
"""

from __future__ import annotations

import json
from typing import Any

from mcp.server.fastmcp import Context
from mcp.server.fastmcp.exceptions import ToolError

from baserow_mcp.handler import ToolHandler

__all__ = ["get_handler", "run_tool", "ToolError"]


def get_handler(ctx: Context) -> ToolHandler:
    """Extract the shared tool handler from the MCP lifespan context."""
    return ctx.request_context.lifespan_context["handler"]


def drop_unset(**kwargs: Any) -> dict[str, Any]:
    """Build a tool-argument dict without the parameters the caller omitted."""
    return {key: value for key, value in kwargs.items() if value is not None}


async def run_tool(ctx: Context, tool_name: str, args: dict[str, Any]) -> dict[str, Any]:
    """Run *tool_name* through the handler and return its success envelope.

    Error envelopes are raised as ToolError carrying the same JSON.
    """
    response = await get_handler(ctx).handle_tool_call(tool_name, args)
    if not response.get("success"):
        error = response["error"]
        await ctx.error(f"{tool_name} failed: [{error['code']}] {error['message']}")
        raise ToolError(json.dumps(response, default=str))
    return response
