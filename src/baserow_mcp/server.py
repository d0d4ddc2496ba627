"""Baserow MCP server entry point.

Run locally:
    uv run baserow-mcp

Install to Claude Desktop:
    uv run mcp install src/baserow_mcp/server.py

Inspect with MCP Inspector:
    uv run mcp dev src/baserow_mcp/server.py

Set BASEROW_TRANSPORT=streamable-http (or sse) to serve over HTTP instead of
stdio.
"""

from __future__ import annotations

import importlib
import logging
import sys

from baserow_mcp.allowlist import AllowList, ConfigurationError
from baserow_mcp.app import mcp, resolve_api_token
from baserow_mcp.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Tool module short-names (suffix of `baserow_mcp.tools.*`).
_ALL_MODULES: list[str] = ["records", "manufacturing"]

_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def _load_tool_modules() -> None:
    """Import tool modules so their @mcp.tool() decorators register."""
    for name in _ALL_MODULES:
        importlib.import_module(f"baserow_mcp.tools.{name}")


# Tool modules must be imported before mcp.run() so their @mcp.tool()
# decorators register against the shared FastMCP instance in app.py.
_load_tool_modules()


def configure_logging(settings: Settings) -> None:
    """Send logs to stderr; stdout carries the stdio MCP stream."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, stream=sys.stderr, format=_LOG_FORMAT)


def check_configuration(settings: Settings) -> AllowList:
    """Fail fast on configuration the lifespan would reject anyway."""
    allow_list = AllowList.from_settings(settings)
    resolve_api_token(settings)
    return allow_list


def main() -> None:
    """Run the MCP server (stdio by default, for Claude Desktop)."""
    settings = get_settings()
    configure_logging(settings)
    try:
        check_configuration(settings)
    except ConfigurationError as exc:
        logger.error("Failed to start Baserow MCP server: %s", exc)
        sys.exit(1)
    logger.info("Starting Baserow MCP server (transport: %s)", settings.transport)
    mcp.run(transport=settings.transport)


if __name__ == "__main__":
    main()
