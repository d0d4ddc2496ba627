"""Application settings loaded from environment variables."""

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Baserow MCP server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BASEROW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_token: str = ""
    """Baserow database token. Falls back to the system keychain when empty."""

    api_url: str = "https://api.baserow.io"
    """Base URL of the Baserow instance (self-hosted instances override this)."""

    log_level: str = "INFO"
    """Logging verbosity for the stderr log handler."""

    transport: Literal["stdio", "streamable-http", "sse"] = "stdio"
    """MCP transport used by ``baserow-mcp``."""

    # One numeric Baserow table ID per allow-listed table.
    # Unset tables stay unreachable.
    table_id_manufacturing_orders: int | None = None
    table_id_mo_parts_usage: int | None = None
    table_id_raw_material_lots: int | None = None
    table_id_inventory_transactions: int | None = None
    table_id_finished_goods: int | None = None
    table_id_cycle_counts: int | None = None
    table_id_fg_parts_mapping: int | None = None
    table_id_label_inventory: int | None = None
    table_id_parts: int | None = None

    filter_mode: Literal["equal", "contains"] = "equal"
    """Baserow filter operator used for ``read`` filters."""

    max_records_per_page: int = 25
    """Upper bound on records returned by ``read``. Set to 0 to disable."""

    max_response_chars: int = 50_000
    """Serialized size budget for ``read`` results."""

    read_only: bool = False
    """When True, every tool that writes to Baserow is rejected."""

    max_write_calls_per_session: int = 50
    """Maximum number of write tool calls allowed per MCP session.
    Set to 0 to disable the limit."""

    mo_status_closed_id: int = 4554566
    """Single-select option ID of the "Closed" MO status."""

    deduction_method_actual_usage_id: int = 4669016
    """Single-select option ID of the "Actual Usage" deduction method."""

    default_entered_by: str = "Alexa via Claude"
    """Value for the "Entered By" field when process_bpr gets none."""

    @field_validator(
        "table_id_manufacturing_orders",
        "table_id_mo_parts_usage",
        "table_id_raw_material_lots",
        "table_id_inventory_transactions",
        "table_id_finished_goods",
        "table_id_cycle_counts",
        "table_id_fg_parts_mapping",
        "table_id_label_inventory",
        "table_id_parts",
        mode="before",
    )
    @classmethod
    def _blank_table_id(cls, v: object) -> object:
        """Treat an empty environment value as an unconfigured table."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def table_id(self, table_name: str) -> int | None:
        """Return the configured ID for *table_name*, or None when unset."""
        return getattr(self, f"table_id_{table_name}", None)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
