"""FastMCP application instance.

Defined in its own module so both server.py and tool modules can import
`mcp` without creating circular imports.

The lifespan builds every component exactly once per server run (allow-list,
HTTP client, services, tool handler) and hands them to tools through the
lifespan context; nothing is kept in module-level singletons.

Read-only mode
--------------
Set ``BASEROW_READ_ONLY=true`` (or ``read_only = true`` in ``.env``) to start
the server in read-only mode.  Write tools still appear in the tool list so
the LLM is aware of them, but every call returns an error envelope instead of
hitting Baserow.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from baserow_mcp.allowlist import TABLE_NAMES, AllowList, ConfigurationError
from baserow_mcp.client import BaserowClient
from baserow_mcp.credentials import find_api_token
from baserow_mcp.handler import ToolHandler
from baserow_mcp.settings import Settings, get_settings
from baserow_mcp.tables import TablesService
from baserow_mcp.workflows import Workflows

logger = logging.getLogger(__name__)


def resolve_api_token(settings: Settings) -> str:
    """Return the Baserow token: BASEROW_API_TOKEN first, then the keychain.

    Raises ConfigurationError when neither source has one.
    """
    found = find_api_token(settings)
    if found is None:
        raise ConfigurationError(
            "BASEROW_API_TOKEN is required. Set it in your .env file or "
            "environment, or run 'baserow-mcp auth' to store it in the keychain."
        )
    logger.info("Using Baserow token from %s", found.source.value)
    return found.value


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict]:
    """Initialise shared resources that tools can access via ctx.request_context."""
    settings = get_settings()
    allow_list = AllowList.from_settings(settings)
    token = resolve_api_token(settings)

    async with BaserowClient(settings, token) as api_client:
        tables = TablesService(allow_list, api_client)
        handler = ToolHandler(tables, Workflows(tables, settings), settings)
        logger.info("Baserow MCP server ready (%d tables)", len(allow_list))
        yield {"handler": handler}


def _build_instructions() -> str:
    base = (
        "You are connected to a Baserow manufacturing database. "
        f"Only these tables can be used: {', '.join(TABLE_NAMES)}. "
        "Use get_bom to find BOM mapping IDs for a finished good, search_parts "
        "to find Part IDs by name, and process_bpr to record a batch "
        "production record and close its manufacturing order. "
        "Every result is a JSON envelope with 'success' and either 'data' or "
        "'error'."
    )
    if get_settings().read_only:
        base += (
            " IMPORTANT: The server is running in READ-ONLY mode. "
            "Any tool that creates, updates, or deletes data will be rejected."
        )
    return base


mcp = FastMCP(
    name="Baserow",
    instructions=_build_instructions(),
    lifespan=lifespan,
)
