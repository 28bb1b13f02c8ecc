"""
Picking engine -- warehouse resolution and pick progress for picklists.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from fulfillment_kernel.domain.values import ZERO
from fulfillment_kernel.exceptions import AmbiguousWarehouseError, ValidationError


def resolve_line_warehouses(
    order_id: str,
    lines: Sequence[Any],
    default_warehouse_id: str | None,
) -> tuple[str, dict[str, str]]:
    """Resolve the warehouse each order line is picked from.

    A line without a warehouse falls back to ``default_warehouse_id``.
    A picklist is picked in one warehouse, so lines resolving to more than
    one distinct warehouse raise AmbiguousWarehouseError instead of one being
    chosen silently.

    Returns:
        (warehouse_id, {line_id: warehouse_id})
    """
    resolved: dict[str, str] = {}
    for line in lines:
        warehouse_id = line.warehouse_id or default_warehouse_id
        if not warehouse_id:
            raise ValidationError(
                f"Line {line.id} has no warehouse and no default is configured",
                field="warehouse_id",
                value=line.id,
            )
        resolved[line.id] = warehouse_id

    distinct = set(resolved.values())
    if len(distinct) > 1:
        raise AmbiguousWarehouseError(order_id, sorted(distinct))
    if not distinct:
        raise ValidationError(f"Sales order {order_id} has no lines", field="lines")
    return distinct.pop(), resolved


def pick_guard_context(lines: Sequence[Any]) -> dict[str, Any]:
    """Guard context for picklist actions."""
    picked = [ln.picked_quantity for ln in lines if ln.picked_quantity is not None]
    return {
        "line_count": len(lines),
        "all_lines_picked": bool(lines) and len(picked) == len(lines),
        "total_picked": sum(picked, ZERO),
    }
