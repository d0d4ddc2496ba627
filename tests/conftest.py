"""Shared pytest fixtures for the baserow-mcp test suite."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

import baserow_mcp.settings as settings_module
from baserow_mcp.allowlist import TABLE_NAMES, AllowList
from baserow_mcp.client import BaserowApiError
from baserow_mcp.handler import ToolHandler
from baserow_mcp.settings import Settings
from baserow_mcp.tables import TablesService
from baserow_mcp.workflows import Workflows

# Every allow-listed table gets a distinct fake Baserow ID: 101, 102, ...
TABLE_IDS: dict[str, int] = {name: 100 + i for i, name in enumerate(TABLE_NAMES, start=1)}


def make_isolated_settings(**overrides: object) -> Settings:
    """Return a Settings instance isolated from .env and env vars.

    ``model_validate`` skips the environment sources of BaseSettings.
    """
    defaults: dict[str, object] = {
        "api_token": "test-token",
        "api_url": "https://baserow.example.invalid",
        "log_level": "INFO",
        "transport": "stdio",
        "filter_mode": "equal",
        "max_records_per_page": 25,
        "max_response_chars": 50_000,
        "read_only": False,
        "max_write_calls_per_session": 50,
        "mo_status_closed_id": 4554566,
        "deduction_method_actual_usage_id": 4669016,
        "default_entered_by": "Alexa via Claude",
    }
    defaults.update({f"table_id_{name}": table_id for name, table_id in TABLE_IDS.items()})
    defaults.update(overrides)
    return Settings.model_validate(defaults)


class FakeBaserow:
    """In-memory stand-in for BaserowClient, keyed by table ID.

    Records every call in ``calls`` as ``(method, table_id, payload)`` so tests
    can assert exactly which requests went out.
    """

    def __init__(self) -> None:
        self.rows: dict[int, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, int, Any]] = []
        # 1-based create call number -> exception to raise instead.
        self.fail_creates: dict[int, Exception] = {}
        self.fail_updates: Exception | None = None
        self._next_id = 1000
        self._create_count = 0

    # -- test helpers --------------------------------------------------------

    def seed(self, table: str, rows: list[dict[str, Any]]) -> None:
        self.rows.setdefault(TABLE_IDS[table], []).extend(copy.deepcopy(rows))

    def table_rows(self, table: str) -> list[dict[str, Any]]:
        return self.rows.get(TABLE_IDS[table], [])

    def calls_for(self, method: str, table: str | None = None) -> list[tuple[str, int, Any]]:
        return [
            call
            for call in self.calls
            if call[0] == method and (table is None or call[1] == TABLE_IDS[table])
        ]

    # -- client surface ------------------------------------------------------

    async def list_rows(
        self,
        table_id: int,
        *,
        filters: dict[str, Any] | None = None,
        page: int | None = None,
        size: int | None = None,
        mode: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            ("list", table_id, {"filters": filters, "page": page, "size": size, "mode": mode})
        )
        rows = self.rows.get(table_id, [])
        for field, value in (filters or {}).items():
            if value is None:
                continue
            if mode == "contains":
                rows = [r for r in rows if str(value).lower() in str(r.get(field, "")).lower()]
            else:
                rows = [r for r in rows if r.get(field) == value]

        page = page or 1
        size = size or 100
        start = (page - 1) * size
        base = f"https://baserow.example.invalid/api/database/rows/table/{table_id}/"
        return {
            "count": len(rows),
            "next": f"{base}?page={page + 1}" if start + size < len(rows) else None,
            "previous": f"{base}?page={page - 1}" if page > 1 else None,
            "results": copy.deepcopy(rows[start : start + size]),
        }

    async def get_row(self, table_id: int, row_id: int) -> dict[str, Any]:
        self.calls.append(("get", table_id, row_id))
        return copy.deepcopy(self._find(table_id, row_id))

    async def create_row(self, table_id: int, data: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", table_id, copy.deepcopy(data)))
        self._create_count += 1
        if self._create_count in self.fail_creates:
            raise self.fail_creates[self._create_count]
        self._next_id += 1
        record = {"id": self._next_id, "order": f"{self._next_id}.00000000000000000000"}
        record.update(copy.deepcopy(data))
        self.rows.setdefault(table_id, []).append(record)
        return copy.deepcopy(record)

    async def update_row(
        self, table_id: int, row_id: int, data: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(("update", table_id, (row_id, copy.deepcopy(data))))
        if self.fail_updates is not None:
            raise self.fail_updates
        row = self._find(table_id, row_id)
        row.update(copy.deepcopy(data))
        return copy.deepcopy(row)

    async def delete_row(self, table_id: int, row_id: int) -> None:
        self.calls.append(("delete", table_id, row_id))
        row = self._find(table_id, row_id)
        self.rows[table_id].remove(row)

    def _find(self, table_id: int, row_id: int) -> dict[str, Any]:
        for row in self.rows.get(table_id, []):
            if row["id"] == row_id:
                return row
        raise BaserowApiError(
            404,
            {"error": "ERROR_ROW_DOES_NOT_EXIST", "detail": f"The row {row_id} does not exist."},
        )


@pytest.fixture(autouse=True)
def reset_globals() -> None:
    """Reset the cached settings before and after every test."""
    settings_module._settings = None
    yield
    settings_module._settings = None


@pytest.fixture(autouse=True)
def fake_keyring(monkeypatch) -> MagicMock:
    """Replace keyring in baserow_mcp.credentials; the keychain starts empty."""
    fake = MagicMock()
    fake.get_password.return_value = None
    monkeypatch.setattr("baserow_mcp.credentials.keyring", fake)
    return fake


@pytest.fixture
def settings() -> Settings:
    return make_isolated_settings()


@pytest.fixture
def settings_factory():
    """Return make_isolated_settings for tests that need custom values."""
    return make_isolated_settings


@pytest.fixture
def allow_list(settings: Settings) -> AllowList:
    return AllowList.from_settings(settings)


@pytest.fixture
def baserow() -> FakeBaserow:
    return FakeBaserow()


@pytest.fixture
def tables(allow_list: AllowList, baserow: FakeBaserow) -> TablesService:
    return TablesService(allow_list, baserow)


@pytest.fixture
def workflows(tables: TablesService, settings: Settings) -> Workflows:
    return Workflows(tables, settings)


@pytest.fixture
def handler(tables: TablesService, workflows: Workflows, settings: Settings) -> ToolHandler:
    return ToolHandler(tables, workflows, settings)


@pytest.fixture
def manufacturing_data(baserow: FakeBaserow) -> FakeBaserow:
    """Seed a small but realistic manufacturing database."""
    baserow.seed(
        "finished_goods",
        [
            {"id": 1, "iSKU": "TN-Liquid-Stevia-Drops-8oz"},
            {"id": 2, "iSKU": "TN-Stevia-Powder-4oz"},
        ],
    )
    baserow.seed(
        "fg_parts_mapping",
        [
            {
                "id": 11,
                "Finished Good": [{"id": 1, "value": "TN-Liquid-Stevia-Drops-8oz"}],
                "Part": [{"id": 501, "value": "RM-LIQ-Stevia"}],
                "Quantity": "0.250",
                "Part Role": {"id": 1, "value": "Raw Material", "color": "blue"},
            },
            {
                "id": 12,
                "Finished Good": [{"id": 1, "value": "TN-Liquid-Stevia-Drops-8oz"}],
                "Part": [{"id": 502, "value": "BTL-8oz-Amber"}],
                "Quantity": "1",
                "Part Role": {"id": 2, "value": "Packaging", "color": "green"},
            },
            {
                "id": 13,
                "Finished Good": [{"id": 1, "value": "TN-Liquid-Stevia-Drops-8oz"}],
                "Part": [],
                "Quantity": "2",
                "Part Role": None,
            },
            {
                "id": 14,
                "Finished Good": [{"id": 2, "value": "TN-Stevia-Powder-4oz"}],
                "Part": [{"id": 503, "value": "PCH-4oz-Stndup-WH-Matt"}],
                "Quantity": "1",
                "Part Role": {"id": 2, "value": "Packaging", "color": "green"},
            },
            {
                "id": 15,
                "Finished Good": [{"id": 1, "value": "TN-Liquid-Stevia-Drops-8oz"}],
                "Part": [{"id": 504, "value": "LABL-8oz-Front"}],
                "Quantity": None,
                "Part Role": None,
            },
        ],
    )
    baserow.seed(
        "manufacturing_orders",
        [
            {"id": 900, "MO Number": "MO-121525-11", "MO Status": {"id": 1, "value": "Open"}},
            {"id": 901, "MO Number": "MO-121525-12", "MO Status": {"id": 1, "value": "Open"}},
        ],
    )
    baserow.seed(
        "raw_material_lots",
        [
            {"id": 302, "Internal Lot Number": "lot-2024-001"},
            {"id": 301, "Internal Lot Number": "LOT-2024-001"},
        ],
    )
    baserow.seed(
        "label_inventory",
        [
            {
                "id": 401,
                "Part BOM ID": [{"ids": {"database_table_9": 504}, "value": "LABL-8oz-Front-Stevia"}],
            },
            {
                "id": 402,
                "Part BOM ID": [{"ids": {"database_table_9": 505}, "value": "LABL-4x6-WHYZ-ALCAR-90g"}],
            },
            {"id": 403, "Part BOM ID": []},
        ],
    )
    return baserow


@pytest.fixture
def mock_ctx(handler: ToolHandler) -> MagicMock:
    """Return a MagicMock Context whose lifespan_context holds the real handler."""
    ctx = MagicMock()
    ctx.request_context.lifespan_context = {"handler": handler}
    ctx.error = AsyncMock()
    ctx.info = AsyncMock()
    return ctx
