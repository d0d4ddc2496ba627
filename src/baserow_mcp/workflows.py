"""Multi-table manufacturing workflows built on TablesService.

get_bom
    Resolve a Finished Good (by ID or iSKU) and list the parts mapped to it.
search_parts
    Find Part IDs by name across the whole ``parts`` table.
process_bpr
    Close out a batch production record: find the MO, resolve BOM mappings,
    lots and labels, create one ``mo_parts_usage`` row per consumed part, then
    close the MO.
batch_create
    Create many rows in bounded concurrent chunks.

None of these are transactional.  When a write fails part-way through,
``PartialWriteError`` reports the IDs that were already committed so the
caller can reconcile; nothing is rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any

from baserow_mcp.models import (
    BatchCreateRequest,
    GetBomRequest,
    LinkReference,
    PartsUsageItem,
    ProcessBprRequest,
    SearchPartsRequest,
)
from baserow_mcp.settings import Settings
from baserow_mcp.tables import TablesService

logger = logging.getLogger(__name__)

# Baserow cannot filter on link-row fields with ``equal``, so BOM mappings,
# lots and labels are fetched unfiltered (one page) and matched locally.
LOOKUP_PAGE_SIZE = 200
PARTS_PAGE_SIZE = 200
MAX_PARTS_PAGES = 50
BATCH_CHUNK_SIZE = 10

PART_NAME_FIELDS: tuple[str, ...] = (
    "BOM ID",
    "Name",
    "Part Name",
    "iSKU",
    "Part Number",
    "SKU",
)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class WorkflowError(Exception):
    """A workflow precondition was not met (MO_NOT_FOUND, BOM_NOT_FOUND, ...)."""

    def __init__(
        self, code: str, message: str, details: dict[str, Any] | None = None
    ) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class PartialWriteError(Exception):
    """A write failed after earlier writes of the same operation committed."""

    def __init__(
        self, cause: Exception, created_ids: list[int], operation: str
    ) -> None:
        self.cause = cause
        self.created_ids = created_ids
        self.operation = operation
        super().__init__(
            f"{operation} failed after creating {len(created_ids)} record(s): {cause}"
        )


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BomItem:
    mapping_id: int
    part_id: int
    part_name: str
    quantity_per_unit: float
    part_role: str


@dataclass(frozen=True)
class BomLink:
    """Part and Finished Good resolved from one fg_parts_mapping row."""

    part_id: int
    fg_id: int
    part_name: str


@dataclass(frozen=True)
class PartMatch:
    part_id: int
    part_name: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_quantity(value: Any) -> float:
    """Parse a Baserow decimal (usually a string like ``"2.500"``); 0 on failure."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def select_value(value: Any, default: str = "Unknown") -> str:
    """Return the label of a single-select field value."""
    if isinstance(value, dict) and value.get("value"):
        return str(value["value"])
    return default


def part_display_name(record: dict[str, Any]) -> str:
    """First non-empty string among the candidate part-name fields."""
    for field in PART_NAME_FIELDS:
        value = record.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def matches_loosely(a: str, b: str) -> bool:
    """Case-insensitive equality or substring containment either way."""
    a, b = a.lower(), b.lower()
    return a == b or a in b or b in a


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


class Workflows:
    """Composite operations spanning several allow-listed tables."""

    def __init__(self, tables: TablesService, settings: Settings) -> None:
        self._tables = tables
        self._settings = settings

    async def _first_match(self, table: str, field: str, value: str) -> dict[str, Any] | None:
        response = await self._tables.list_records(table, {field: value}, 1, 1, mode="equal")
        results = response.get("results") or []
        return results[0] if results else None

    async def _lookup_page(self, table: str) -> list[dict[str, Any]]:
        response = await self._tables.list_records(table, None, 1, LOOKUP_PAGE_SIZE)
        results = response.get("results") or []
        count = response.get("count")
        if isinstance(count, int) and count > len(results):
            logger.warning(
                "%s has %d rows but only the first %d are searched",
                table,
                count,
                len(results),
            )
        return results

    # -- get_bom -------------------------------------------------------------

    async def get_bom(self, request: GetBomRequest) -> dict[str, Any]:
        """Return the parts mapped to a Finished Good."""
        fg_id = request.fg_id
        fg_isku = request.isku or ""

        if fg_id is None and request.isku:
            logger.info("Searching for FG by iSKU: %s", request.isku)
            fg = await self._first_match("finished_goods", "iSKU", request.isku)
            if fg is None:
                raise WorkflowError(
                    "FG_NOT_FOUND",
                    f'Finished Good with iSKU "{request.isku}" not found',
                    {"isku": request.isku},
                )
            fg_id = fg["id"]

        if fg_id is None:
            raise WorkflowError("INVALID_REQUEST", "Either fg_id or isku must be provided")

        logger.info("Searching BOM for FG ID: %d", fg_id)
        parts: list[BomItem] = []
        skipped = 0

        for mapping in await self._lookup_page("fg_parts_mapping"):
            finished_good = LinkReference.from_field(mapping.get("Finished Good")).first
            if finished_good is None or finished_good.id != fg_id:
                continue
            if not fg_isku and finished_good.display:
                fg_isku = finished_good.display

            # A mapping without a Part cannot be consumed by process_bpr, so
            # it is left out of the BOM and reported in skipped_mappings.
            part = LinkReference.from_field(mapping.get("Part")).first
            if part is None or part.id is None:
                skipped += 1
                logger.debug("Skipping mapping %s: no Part link", mapping.get("id"))
                continue

            parts.append(
                BomItem(
                    mapping_id=mapping["id"],
                    part_id=part.id,
                    part_name=part.display or "Unknown",
                    quantity_per_unit=parse_quantity(mapping.get("Quantity")),
                    part_role=select_value(mapping.get("Part Role")),
                )
            )

        logger.info("Found %d parts in BOM (%d skipped)", len(parts), skipped)
        return {
            "fg_id": fg_id,
            "fg_isku": fg_isku,
            "parts": [asdict(item) for item in parts],
            "total_parts": len(parts),
            "skipped_mappings": skipped,
        }

    # -- search_parts --------------------------------------------------------

    async def _load_part_index(self) -> tuple[dict[str, PartMatch], int]:
        """Page through the parts table and index it by lower-cased name.

        The first record seen for a name wins, so iteration order (page 1
        first, store order within a page) decides substring tie-breaks.
        """
        index: dict[str, PartMatch] = {}
        page = 1
        pages_loaded = 0

        while True:
            if page > MAX_PARTS_PAGES:
                logger.warning(
                    "Reached max page limit (%d) when loading parts", MAX_PARTS_PAGES
                )
                break
            response = await self._tables.list_records("parts", None, page, PARTS_PAGE_SIZE)
            results = response.get("results") or []
            pages_loaded += 1

            for record in results:
                name = part_display_name(record)
                if name:
                    index.setdefault(name.lower(), PartMatch(record["id"], name))

            if response.get("next") is None or not results:
                break
            page += 1

        logger.info("Loaded %d parts from parts table (%d pages)", len(index), pages_loaded)
        return index, pages_loaded

    async def search_parts(self, request: SearchPartsRequest) -> dict[str, Any]:
        """Resolve part names to Part IDs: exact match first, then substring."""
        index, pages_loaded = await self._load_part_index()

        results: list[dict[str, Any]] = []
        not_found: list[str] = []

        for term in request.search_terms:
            key = term.lower()
            found = index.get(key)
            if found is None:
                found = next(
                    (info for name, info in index.items() if key in name or name in key),
                    None,
                )

            if found is None:
                not_found.append(term)
                results.append(
                    {"part_id": 0, "part_name": "", "search_term": term, "found": False}
                )
            else:
                results.append(
                    {
                        "part_id": found.part_id,
                        "part_name": found.part_name,
                        "search_term": term,
                        "found": True,
                    }
                )

        found_count = len(results) - len(not_found)
        logger.info("Found %d of %d parts", found_count, len(request.search_terms))
        return {
            "results": results,
            "found_count": found_count,
            "not_found": not_found,
            "parts_loaded": len(index),
            "pages_loaded": pages_loaded,
        }

    # -- process_bpr ---------------------------------------------------------

    async def _resolve_bom_links(self, bom_ids: list[int]) -> dict[int, BomLink]:
        wanted = set(bom_ids)
        lookup: dict[int, BomLink] = {}
        for mapping in await self._lookup_page("fg_parts_mapping"):
            if mapping.get("id") not in wanted:
                continue
            part = LinkReference.from_field(mapping.get("Part")).first
            finished_good = LinkReference.from_field(mapping.get("Finished Good")).first
            if part is None or part.id is None:
                continue
            if finished_good is None or finished_good.id is None:
                continue
            lookup[mapping["id"]] = BomLink(
                part_id=part.id,
                fg_id=finished_good.id,
                part_name=part.display or "Unknown",
            )
        return lookup

    async def _resolve_lots(self, items: list[PartsUsageItem]) -> dict[str, int]:
        """Map Internal Lot Number -> lot row ID (exact, case-sensitive)."""
        wanted = {item.lot_number for item in items if item.lot_number and not item.lot_id}
        if not wanted:
            return {}
        logger.info("Looking up %d lot numbers", len(wanted))
        lots: dict[str, int] = {}
        for lot in await self._lookup_page("raw_material_lots"):
            number = lot.get("Internal Lot Number")
            if isinstance(number, str) and number in wanted and number not in lots:
                lots[number] = lot["id"]
                logger.info("Found lot: %s -> ID %d", number, lot["id"])
        return lots

    async def _resolve_labels(self, items: list[PartsUsageItem]) -> dict[str, int]:
        """Map label code -> label row ID via the "Part BOM ID" lookup field.

        Each code takes the first label (in store order) whose display value
        matches it loosely.
        """
        wanted = list(
            dict.fromkeys(
                item.label_code for item in items if item.label_code and not item.label_id
            )
        )
        if not wanted:
            return {}
        logger.info("Looking up %d label codes", len(wanted))

        candidates: list[tuple[str, int]] = []
        for label in await self._lookup_page("label_inventory"):
            entry = LinkReference.from_field(label.get("Part BOM ID")).first
            if entry is not None and entry.display:
                candidates.append((entry.display, label["id"]))

        labels: dict[str, int] = {}
        for code in wanted:
            for display, label_id in candidates:
                if matches_loosely(code, display):
                    labels[code] = label_id
                    logger.info(
                        "Found label: %s -> ID %d (Part BOM ID: %s)", code, label_id, display
                    )
                    break
        return labels

    def _usage_record(
        self,
        item: PartsUsageItem,
        link: BomLink,
        mo_id: int,
        request: ProcessBprRequest,
        lots: dict[str, int],
        labels: dict[str, int],
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "Manufacturing Order": [mo_id],
            "Parts": [link.part_id],
            "Finished Goods": [link.fg_id],
            "Actual Quantity Used": item.quantity,
            "Notes": item.notes or f"From BPR scan - {request.mo_number}",
            "Entered By": request.entered_by or self._settings.default_entered_by,
        }

        lot_id = item.lot_id or (lots.get(item.lot_number) if item.lot_number else None)
        if lot_id:
            data["RM Lot Inventory Used"] = [lot_id]
        elif item.lot_number:
            logger.warning("Lot %s not found; usage recorded without lot", item.lot_number)

        label_id = item.label_id or (labels.get(item.label_code) if item.label_code else None)
        if label_id:
            data["Label Inventory Used"] = [label_id]
        elif item.label_code:
            logger.warning("Label %s not found; usage recorded without label", item.label_code)

        if item.waste is not None:
            data["Waste/Spillage"] = item.waste
        return data

    async def process_bpr(self, request: ProcessBprRequest) -> dict[str, Any]:
        """Record actual part usage for an MO and close it."""
        logger.info("Processing BPR for MO: %s", request.mo_number)

        # Step 1: the Manufacturing Order.
        mo = await self._first_match("manufacturing_orders", "MO Number", request.mo_number)
        if mo is None:
            raise WorkflowError(
                "MO_NOT_FOUND",
                f"Manufacturing Order {request.mo_number} not found",
                {"mo_number": request.mo_number},
            )
        mo_id = mo["id"]
        logger.info("Found MO with ID: %d", mo_id)

        # Step 2: every BOM mapping must resolve, or nothing is written.
        bom_ids = [item.bom_id for item in request.parts_usage]
        bom_links = await self._resolve_bom_links(bom_ids)
        missing = list(dict.fromkeys(b for b in bom_ids if b not in bom_links))
        if missing:
            raise WorkflowError(
                "BOM_NOT_FOUND",
                f"BOM mapping IDs not found: {', '.join(str(b) for b in missing)}",
                {"missing_bom_ids": missing},
            )

        # Step 3: optional lot / label lookups.
        lots = await self._resolve_lots(request.parts_usage)
        labels = await self._resolve_labels(request.parts_usage)

        # Step 4: usage records, one at a time in input order.
        created_ids: list[int] = []
        for item in request.parts_usage:
            link = bom_links[item.bom_id]
            data = self._usage_record(item, link, mo_id, request, lots, labels)
            try:
                record = await self._tables.create_record("mo_parts_usage", data)
            except Exception as exc:
                logger.error(
                    "Failed to create usage record for BOM %d (part: %s)",
                    item.bom_id,
                    link.part_name,
                )
                raise PartialWriteError(exc, created_ids, "process_bpr") from exc
            created_ids.append(record["id"])
            logger.info(
                "Created usage record ID %d for part %s", record["id"], link.part_name
            )

        # Step 5: close the MO.
        update = {
            "MO Status": self._settings.mo_status_closed_id,
            "Deduction Method": self._settings.deduction_method_actual_usage_id,
            "MFG Date Completed": request.completion_date,
            "Gross Produced": request.gross_produced,
            "Actual Usage Complete": True,
            "MO Inventory Processed": True,
        }
        try:
            await self._tables.update_record("manufacturing_orders", mo_id, update)
        except Exception as exc:
            raise PartialWriteError(exc, created_ids, "process_bpr") from exc

        logger.info("BPR processing completed for MO %s", request.mo_number)
        return {
            "mo_id": mo_id,
            "mo_number": request.mo_number,
            "parts_usage_created": len(created_ids),
            "parts_usage_ids": created_ids,
            "mo_updated": True,
            "summary": (
                f"BPR processed: MO {request.mo_number} closed with "
                f"{len(created_ids)} parts usage records. "
                f"Gross produced: {request.gross_produced}"
            ),
        }

    # -- batch_create --------------------------------------------------------

    async def batch_create(self, request: BatchCreateRequest) -> dict[str, Any]:
        """Create records in chunks of BATCH_CHUNK_SIZE concurrent requests."""
        # Fail fast on a denied table before any request goes out.
        self._tables.allow_list.resolve(request.table)
        logger.info("Batch creating %d records in %s", len(request.records), request.table)

        created: list[dict[str, Any]] = []
        for start in range(0, len(request.records), BATCH_CHUNK_SIZE):
            chunk = request.records[start : start + BATCH_CHUNK_SIZE]
            outcomes = await asyncio.gather(
                *(self._tables.create_record(request.table, dict(data)) for data in chunk),
                return_exceptions=True,
            )
            failures = [o for o in outcomes if isinstance(o, BaseException)]
            created.extend(o for o in outcomes if not isinstance(o, BaseException))
            if failures:
                cause = failures[0]
                if not isinstance(cause, Exception):
                    raise cause
                raise PartialWriteError(
                    cause, [r["id"] for r in created], "batch_create"
                ) from cause

        logger.info("Successfully created %d records", len(created))
        return {
            "created": len(created),
            "records": [{"id": r.get("id"), "order": r.get("order")} for r in created],
        }
