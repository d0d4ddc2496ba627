"""Table allow-list: the only tables this server may ever touch.

A table is reachable when its name belongs to the static ``TABLES`` catalogue
*and* a positive integer Baserow table ID was configured for it
(``BASEROW_TABLE_ID_<NAME>``).  Everything else is rejected before any HTTP
request is built.

The allow-list is built once at startup by ``AllowList.from_settings`` and is
read-only afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType

from baserow_mcp.settings import Settings

logger = logging.getLogger(__name__)


# Semantic table name -> human description (shown by list_tables).
TABLES: dict[str, str] = {
    "manufacturing_orders": "Manufacturing Orders (MO) for tracking production lifecycle",
    "mo_parts_usage": "Parts consumption records for manufacturing orders",
    "raw_material_lots": "Raw material lot tracking and traceability",
    "inventory_transactions": "Inventory movement and transaction logs",
    "finished_goods": "Finished product inventory tracking",
    "cycle_counts": "Inventory cycle count records",
    "fg_parts_mapping": "Finished Goods to Parts BOM mapping",
    "label_inventory": "Label inventory tracking by label code",
    "parts": "Parts/Components/Raw Materials master table",
}

TABLE_NAMES: tuple[str, ...] = tuple(TABLES)


class ConfigurationError(Exception):
    """Raised when the server cannot start with the supplied configuration."""


class UnauthorizedTableAccess(Exception):
    """Raised when a table is not in the allow-list or has no configured ID."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f'Access denied: table "{table}" is not authorized for access')


@dataclass(frozen=True)
class TableInfo:
    """A reachable table: semantic name, Baserow ID, and description."""

    name: str
    id: int
    description: str

    def as_dict(self) -> dict[str, object]:
        return {"name": self.name, "id": self.id, "description": self.description}


class AllowList:
    """Immutable mapping of allowed table names to Baserow table IDs."""

    def __init__(self, tables: dict[str, TableInfo]) -> None:
        """Wrap an already validated name -> TableInfo mapping.

        Use ``from_settings`` in production code; this constructor exists so
        tests can build an allow-list directly.
        """
        unknown = set(tables) - set(TABLE_NAMES)
        if unknown:
            raise ConfigurationError(
                f"Unknown table name(s): {', '.join(sorted(unknown))}"
            )
        self._tables = MappingProxyType(dict(tables))

    @classmethod
    def from_settings(cls, settings: Settings) -> AllowList:
        """Build the allow-list from one configured ID per known table.

        Raises ConfigurationError if an ID is not a positive integer or if no
        table is configured at all.  Tables without an ID are logged and left
        unreachable.
        """
        tables: dict[str, TableInfo] = {}
        missing: list[str] = []

        for name, description in TABLES.items():
            table_id = settings.table_id(name)
            if table_id is None:
                missing.append(f"{name} (BASEROW_TABLE_ID_{name.upper()})")
                continue
            if isinstance(table_id, bool) or not isinstance(table_id, int) or table_id <= 0:
                raise ConfigurationError(
                    f"Invalid table ID for {name}: {table_id!r} - must be a positive integer"
                )
            tables[name] = TableInfo(name=name, id=table_id, description=description)
            logger.debug("Registered table: %s -> ID %d", name, table_id)

        if not tables:
            raise ConfigurationError(
                "No tables configured. Set at least one BASEROW_TABLE_ID_* "
                "environment variable."
            )

        if missing:
            logger.warning(
                "Missing table configurations (these tables will be unavailable): %s",
                ", ".join(missing),
            )

        logger.info("Allow-list initialised with %d tables", len(tables))
        return cls(tables)

    def is_allowed(self, table: str) -> bool:
        """Return True only for known table names that have a configured ID."""
        if table not in TABLES:
            logger.warning('Access denied: table "%s" is not in the allow list', table)
            return False
        if table not in self._tables:
            logger.warning('Access denied: table "%s" is not configured', table)
            return False
        return True

    def resolve(self, table: str) -> int:
        """Return the Baserow table ID for *table*.

        Raises UnauthorizedTableAccess when the table is not allowed.
        """
        if not self.is_allowed(table):
            raise UnauthorizedTableAccess(table)
        return self._tables[table].id

    def tables(self) -> list[TableInfo]:
        """Return every reachable table, in catalogue order."""
        return [self._tables[name] for name in TABLE_NAMES if name in self._tables]

    def __len__(self) -> int:
        return len(self._tables)
