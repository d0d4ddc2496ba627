"""Typed request models for every tool, plus the link-reference value type.

``parse_request`` is the validation gate: it maps a tool name to its request
model and validates the loosely-typed MCP arguments against it.  Failures
raise ``RequestValidationError`` with one ``Violation`` per offending field;
nothing is ever partially accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from baserow_mcp.client import FilterValue

MAX_PAGE_SIZE = 200
MAX_BATCH_RECORDS = 50

PositiveId = Annotated[int, Field(gt=0)]
FieldValue = str | int | float | bool | None | list[Any]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    """A single field-level validation failure."""

    field: str
    reason: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "reason": self.reason}


class RequestValidationError(Exception):
    """Raised when tool arguments do not match the command's schema."""

    def __init__(self, violations: list[Violation]) -> None:
        self.violations = violations
        super().__init__("; ".join(f"{v.field}: {v.reason}" for v in violations))


class UnknownToolError(Exception):
    """Raised when a tool name does not map to any command."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"Unknown tool: {tool}")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _Request(BaseModel):
    # Strict: "5" is not an int. Unknown keys are dropped.
    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)


class ListTablesRequest(_Request):
    """``list_tables`` takes no arguments."""


class ReadRequest(_Request):
    table: str
    filters: dict[str, FilterValue] | None = None
    page: PositiveId | None = None
    size: Annotated[int, Field(gt=0, le=MAX_PAGE_SIZE)] | None = None


class CreateRequest(_Request):
    table: str
    data: dict[str, FieldValue]


class UpdateRequest(_Request):
    table: str
    record_id: PositiveId
    data: dict[str, FieldValue]


class DeleteRequest(_Request):
    table: str
    record_id: PositiveId


class BatchCreateRequest(_Request):
    table: str
    records: Annotated[list[dict[str, FieldValue]], Field(max_length=MAX_BATCH_RECORDS)]


class GetBomRequest(_Request):
    fg_id: PositiveId | None = None
    isku: str | None = None


class PartsUsageItem(_Request):
    """One consumed part in a batch production record.

    ``bom_id`` is the fg_parts_mapping row ID; Part and Finished Good are
    always derived from it.  ``lot_id``/``label_id`` take precedence over
    ``lot_number``/``label_code``.
    """

    bom_id: PositiveId
    quantity: float
    lot_id: PositiveId | None = None
    lot_number: str | None = None
    label_id: PositiveId | None = None
    label_code: str | None = None
    waste: float | None = None
    notes: str | None = None


class ProcessBprRequest(_Request):
    mo_number: Annotated[str, Field(min_length=1)]
    completion_date: Annotated[str, Field(min_length=1)]
    gross_produced: Annotated[str, Field(min_length=1)]
    parts_usage: Annotated[list[PartsUsageItem], Field(min_length=1)]
    entered_by: str | None = None


class SearchPartsRequest(_Request):
    search_terms: list[Annotated[str, Field(min_length=1)]]


COMMANDS: dict[str, type[_Request]] = {
    "list_tables": ListTablesRequest,
    "read": ReadRequest,
    "create": CreateRequest,
    "update": UpdateRequest,
    "delete": DeleteRequest,
    "batch_create": BatchCreateRequest,
    "get_bom": GetBomRequest,
    "process_bpr": ProcessBprRequest,
    "search_parts": SearchPartsRequest,
}

WRITE_COMMANDS: frozenset[str] = frozenset(
    {"create", "update", "delete", "batch_create", "process_bpr"}
)


def _violations(exc: ValidationError) -> list[Violation]:
    return [
        Violation(
            field=".".join(str(part) for part in err["loc"]) or "<root>",
            reason=err["msg"],
        )
        for err in exc.errors()
    ]


def parse_request(tool_name: str, args: Any) -> _Request:
    """Validate *args* for *tool_name* and return the typed request.

    Raises UnknownToolError for unrecognised tools and RequestValidationError
    for malformed arguments.
    """
    model = COMMANDS.get(tool_name)
    if model is None:
        raise UnknownToolError(tool_name)
    if not isinstance(args, dict):
        args = {}
    try:
        return model.model_validate(args)
    except ValidationError as exc:
        raise RequestValidationError(_violations(exc)) from exc


# ---------------------------------------------------------------------------
# Link references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LinkEntry:
    """One ``{id, value}`` element of a Baserow link-row field.

    Lookup fields carry ``ids`` instead of ``id``; their entries have
    ``id=None`` and only a display value.
    """

    id: int | None
    display: str


@dataclass(frozen=True)
class LinkReference:
    """An ordered, possibly empty, list of link entries."""

    entries: tuple[LinkEntry, ...] = ()

    @classmethod
    def from_field(cls, value: Any) -> LinkReference:
        """Parse a raw record field; anything that is not a list is empty."""
        if not isinstance(value, list):
            return cls()
        entries: list[LinkEntry] = []
        for item in value:
            if not isinstance(item, dict):
                continue
            raw_id = item.get("id")
            entry_id = (
                raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else None
            )
            display = item.get("value")
            entries.append(LinkEntry(entry_id, "" if display is None else str(display)))
        return cls(tuple(entries))

    @property
    def first(self) -> LinkEntry | None:
        """The only entry the manufacturing workflows ever consult."""
        return self.entries[0] if self.entries else None

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
