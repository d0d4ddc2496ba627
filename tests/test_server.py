"""Tests for baserow_mcp.server: tool registration, logging, and startup."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import pytest

from baserow_mcp.app import mcp
from baserow_mcp.server import (
    _ALL_MODULES,
    _load_tool_modules,
    check_configuration,
    configure_logging,
    main,
)

_EXPECTED_TOOLS = {
    "list_tables",
    "read",
    "create",
    "update",
    "delete",
    "batch_create",
    "get_bom",
    "search_parts",
    "process_bpr",
}


class TestLoadToolModules:
    def test_imports_every_module(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Each tool module is imported once so its tools register on mcp."""
        mock_import = MagicMock()
        monkeypatch.setattr("baserow_mcp.server.importlib.import_module", mock_import)

        _load_tool_modules()

        assert mock_import.call_count == len(_ALL_MODULES)
        for name in _ALL_MODULES:
            mock_import.assert_any_call(f"baserow_mcp.tools.{name}")

    async def test_all_tools_registered(self) -> None:
        tools = await mcp.list_tools()
        assert {tool.name for tool in tools} == _EXPECTED_TOOLS


class TestConfigureLogging:
    def test_level_from_settings(self, settings_factory) -> None:
        with patch("baserow_mcp.server.logging.basicConfig") as basic_config:
            configure_logging(settings_factory(log_level="debug"))
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, settings_factory) -> None:
        with patch("baserow_mcp.server.logging.basicConfig") as basic_config:
            configure_logging(settings_factory(log_level="chatty"))
        assert basic_config.call_args.kwargs["level"] == logging.INFO


class TestStartup:
    def test_check_configuration_returns_allow_list(self, settings) -> None:
        assert len(check_configuration(settings)) == 9

    def test_main_exits_on_configuration_error(self, settings_factory) -> None:
        """A missing token exits with status 1 before the transport starts."""
        settings = settings_factory(api_token="")
        with (
            patch("baserow_mcp.server.get_settings", return_value=settings),
            patch("baserow_mcp.server.configure_logging"),
            patch("baserow_mcp.server.mcp") as mock_mcp,
        ):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1
        mock_mcp.run.assert_not_called()

    def test_main_runs_configured_transport(self, settings_factory) -> None:
        settings = settings_factory(transport="streamable-http")
        with (
            patch("baserow_mcp.server.get_settings", return_value=settings),
            patch("baserow_mcp.server.configure_logging"),
            patch("baserow_mcp.server.mcp") as mock_mcp,
        ):
            main()
        mock_mcp.run.assert_called_once_with(transport="streamable-http")
