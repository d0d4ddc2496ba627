"""Keep ``read`` responses small enough for a constrained assistant interface.

Baserow rows often carry link fields with hundreds of entries (sales
channels, inventory logs, ...).  The shaper trims the result list, collapses
those known-large link fields, and annotates the payload with a ``_note``
whenever anything was dropped.  It never raises.
"""

from __future__ import annotations

import json
from typing import Any

MAX_RECORDS = 25
MAX_RESPONSE_CHARS = 50_000
REDUCED_RECORDS = 10
SMALL_LINK_LIMIT = 3

FIELDS_TO_SIMPLIFY: frozenset[str] = frozenset(
    {
        "AMAZON SALES & INVENTORY",
        "ShipStation SKU Mapping",
        "TikTok Sales & Inventory",
        "Walmart Sales & Inventory - Finished Goods",
        "FBA Inventory Qty",
        "WH Inventory Qty",
        "Amazon Inventory Health",
        "Fulfillment Orders",
        "Manufacturing Orders",
        "FG Parts Mapping",
        "Inventory Transactions",
        "MO Parts Usage",
        "Cycle Count Log",
        "Kit Components Mapping",
        "Kit Parts Mapping",
        "Kitting Orders",
        "Mo Plan",
        "Mo Plan 2",
        "IHF Order Summary By Day",
        "Manufacturing Batches",
        "FO Plan (Multi-Channel) v2",
        "IHF Sales & Inventory",
        "Receiving Log",
        "Count Cycle Schedule",
        "Labels",
        "Finished Goods Inventory",
    }
)


def _has_id(item: Any) -> bool:
    return isinstance(item, dict) and "id" in item


def simplify_link_field(value: list[Any]) -> list[Any] | dict[str, Any]:
    """Collapse a link-reference array.

    Empty stays empty, up to three entries keep ``{id, value}`` only, longer
    arrays become ``{_count, _first, _note}``.
    """
    if not value:
        return []
    if len(value) <= SMALL_LINK_LIMIT:
        return [
            {"id": item.get("id"), "value": item.get("value")} if _has_id(item) else item
            for item in value
        ]
    first = value[0]
    return {
        "_count": len(value),
        "_first": {"id": first["id"]} if _has_id(first) else first,
        "_note": f"{len(value)} items (simplified)",
    }


def simplify_record(record: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *record* with known-large link fields collapsed."""
    simplified: dict[str, Any] = {}
    for key, value in record.items():
        if key in FIELDS_TO_SIMPLIFY and isinstance(value, list):
            simplified[key] = simplify_link_field(value)
        else:
            simplified[key] = value
    return simplified


def _serialized_length(records: list[dict[str, Any]]) -> int:
    try:
        return len(json.dumps(records, default=str))
    except (TypeError, ValueError):
        # Unserialisable payloads are treated as oversized.
        return MAX_RESPONSE_CHARS + 1


def shape_list_response(
    response: dict[str, Any],
    *,
    max_records: int = MAX_RECORDS,
    max_chars: int = MAX_RESPONSE_CHARS,
) -> dict[str, Any]:
    """Trim a ``{count, next, previous, results}`` page to the size budget."""
    results = response.get("results") or []
    if not isinstance(results, list):
        results = []
    total = response.get("count", len(results))

    limited = results[:max_records] if max_records > 0 else list(results)
    simplified = [
        simplify_record(r) if isinstance(r, dict) else r for r in limited
    ]

    shaped = {**response, "results": simplified}

    if _serialized_length(simplified) > max_chars and len(simplified) > REDUCED_RECORDS:
        shaped["results"] = simplified[:REDUCED_RECORDS]
        shaped["_note"] = (
            f"Response truncated: showing {REDUCED_RECORDS} of {total} records. "
            "Use filters for specific data."
        )
    elif len(limited) < len(results):
        shaped["_note"] = (
            f"Response limited: showing {len(limited)} of {total} records. "
            "Use pagination or filters."
        )
    return shaped
