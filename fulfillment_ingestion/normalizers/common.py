"""
Pieces shared by the document normalizers: line ids, priced line fields,
reference snapshots and the final total reconciliation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from fulfillment_engines.aggregation import recompute_document, recompute_line
from fulfillment_engines.reconciler import validate_line_inputs
from fulfillment_ingestion.domain.types import FieldAlias, WireShape
from fulfillment_ingestion.mapping.engine import (
    check_reconciles,
    coerce_decimal,
    coerce_id,
    coerce_text,
    pick,
    pick_as,
)
from fulfillment_kernel.domain.catalog import ReferenceSnapshot
from fulfillment_kernel.domain.values import ZERO
from fulfillment_kernel.exceptions import UnexpectedResponseShapeError, ValidationError

D = TypeVar("D")
L = TypeVar("L")

LINE_ID = FieldAlias("id", ("id", "lineId"))
ITEM_ID = FieldAlias("item_id", ("itemId", "item_id"), required=True)
ITEM_CODE = FieldAlias("item_code", ("itemSku", "sku", "itemCode"))
ITEM_NAME = FieldAlias("item_name", ("itemName",))
QUANTITY = FieldAlias("quantity", ("quantity", "qty"), required=True)
UNIT_PRICE = FieldAlias("unit_price", ("unitPrice", "unitCost", "estimatedPrice", "rate"), default=ZERO)
DISCOUNT_PERCENT = FieldAlias("discount_percent", ("discountPercent", "discount_percent"), default=ZERO)
TAX_PERCENT = FieldAlias("tax_percent", ("taxPercent", "taxRate", "tax_percent"), default=ZERO)
LINE_TOTAL = FieldAlias("line_total", ("lineTotal", "line_total"))
WAREHOUSE_ID = FieldAlias("warehouse_id", ("warehouseId", "warehouse_id"))
NOTES = FieldAlias("notes", ("notes", "remarks"))
CURRENCY = FieldAlias("currency", ("currency", "currencyCode"), default="INR")
TOTAL_AMOUNT = FieldAlias("total_amount", ("totalAmount", "total"))


def line_id(raw: Mapping[str, Any], shape: WireShape, document_id: str, index: int) -> str:
    """Wire line id, else ``<document id>-<1-based position>``."""
    value = pick(raw, LINE_ID, shape)
    if value is None:
        return f"{document_id}-{index + 1}"
    return coerce_id(value, shape, "line_id")


def snapshot(
    entity_id: str,
    code: Any,
    name: Any,
    shape: WireShape,
) -> ReferenceSnapshot | None:
    """Display snapshot when the payload names the referenced entity."""
    if name is None:
        return None
    return ReferenceSnapshot(
        id=entity_id,
        code=coerce_text(code, shape, "code") if code is not None else entity_id,
        name=coerce_text(name, shape, "name"),
    )


def priced_line_fields(
    raw: Mapping[str, Any],
    shape: WireShape,
    places: int,
    quantity: FieldAlias = QUANTITY,
) -> dict[str, Any]:
    """Constructor arguments shared by every priced line class."""
    item_id = coerce_id(pick(raw, ITEM_ID, shape), shape, "item_id")
    return {
        "item_id": item_id,
        "quantity": coerce_decimal(pick(raw, quantity, shape), shape, quantity.target),
        "unit_price": coerce_decimal(pick(raw, UNIT_PRICE, shape), shape, "unit_price", places),
        "discount_percent": coerce_decimal(
            pick(raw, DISCOUNT_PERCENT, shape), shape, "discount_percent"
        ),
        "tax_percent": coerce_decimal(pick(raw, TAX_PERCENT, shape), shape, "tax_percent"),
        "item": snapshot(
            item_id, pick(raw, ITEM_CODE, shape), pick(raw, ITEM_NAME, shape), shape
        ),
    }


def optional_text(raw: Mapping[str, Any], alias: FieldAlias, shape: WireShape) -> str | None:
    return pick_as(raw, alias, shape, coerce_text)


def reconciled_line(line: L, raw: Mapping[str, Any], shape: WireShape, places: int) -> L:
    """``line`` with its derived total; the wire ``lineTotal`` must agree."""
    try:
        validate_line_inputs(
            line.quantity, line.unit_price, line.discount_percent, line.tax_percent, line.id
        )
    except ValidationError as exc:
        raise UnexpectedResponseShapeError(shape.value, str(exc), field=exc.field) from exc
    line = recompute_line(line, places)
    check_reconciles(raw, LINE_TOTAL, line.line_total, shape)
    return line


def reconciled_document(document: D, raw: Mapping[str, Any], shape: WireShape) -> D:
    """``document`` with derived totals; the wire ``totalAmount`` must agree."""
    document = recompute_document(document)
    check_reconciles(raw, TOTAL_AMOUNT, document.total_amount, shape)
    return document
