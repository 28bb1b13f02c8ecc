"""
Purchasing normalizers: requisitions, purchase orders, goods receipts.

Wire shapes (backend v3):

* Requisition -- ``{id, requisitionNumber, status, createdAt, approvedAt,
  items: [{itemId, requestedQty, remarks}]}``
* Purchase order -- ``{id, orderNumber, supplierId, supplierName,
  orderDate, status, totalAmount, items: [{itemId, quantity, unitCost,
  lineTotal}], createdById}``
* Goods receipt -- ``{id, purchaseOrderId, receivedAt, items: [{itemId,
  receivedQty, acceptedQty, rejectedQty, remarks}]}``

The backend reports its own ``lineTotal`` and ``totalAmount``; both must
agree with the recomputed values or the payload is rejected.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from fulfillment_ingestion.domain.types import FieldAlias, WireShape
from fulfillment_ingestion.mapping.engine import (
    build,
    coerce_date,
    coerce_datetime,
    coerce_decimal,
    coerce_id,
    coerce_text,
    compact,
    has_any,
    parse_wire_status,
    pick,
    pick_as,
    require_list,
    require_mapping,
    wire_date,
    wire_id,
    wire_number,
)
from fulfillment_ingestion.normalizers.common import (
    CURRENCY,
    ITEM_ID,
    NOTES,
    WAREHOUSE_ID,
    line_id,
    optional_text,
    priced_line_fields,
    reconciled_document,
    reconciled_line,
    snapshot,
)
from fulfillment_kernel.domain.values import ZERO, currency_places
from fulfillment_kernel.exceptions import UnexpectedResponseShapeError
from fulfillment_kernel.logging_config import get_logger
from fulfillment_modules.purchasing.models import (
    GoodsReceipt,
    GoodsReceiptLine,
    POStatus,
    PurchaseOrder,
    PurchaseOrderLine,
    QualityStatus,
    ReceiptStatus,
    Requisition,
    RequisitionLine,
    RequisitionStatus,
)

logger = get_logger("ingestion.normalizers.purchase")

_ID = FieldAlias("id", ("id",), required=True)
_STATUS = FieldAlias("status", ("status",))
_CREATED_AT = FieldAlias("created_at", ("createdAt",))
_UPDATED_AT = FieldAlias("updated_at", ("updatedAt", "createdAt"))

# Requisition
_REQUISITION_NO = FieldAlias("document_no", ("requisitionNumber", "requisitionNo", "documentNo"))
_REQUESTED_QTY = FieldAlias("quantity", ("requestedQty", "quantity"), required=True)
_REQUESTED_BY = FieldAlias("requested_by", ("requestedBy", "requestedByName", "createdByName"), default="")
_REQUESTED_DATE = FieldAlias("requested_date", ("requestedDate", "createdAt"), required=True)
_DEPARTMENT = FieldAlias("department", ("department", "departmentName"))
_REQUIRED_DATE = FieldAlias("required_date", ("requiredDate",))
_APPROVED_BY = FieldAlias("approved_by", ("approvedBy", "approvedByName"))
_APPROVED_AT = FieldAlias("approved_date", ("approvedAt", "approvedDate"))
_REJECTION_REASON = FieldAlias("rejection_reason", ("rejectionReason",))

# Purchase order
_ORDER_NO = FieldAlias("document_no", ("orderNumber", "orderNo", "order_number"))
_SUPPLIER_ID = FieldAlias("supplier_id", ("supplierId", "vendorId"), required=True)
_SUPPLIER_CODE = FieldAlias("supplier_code", ("supplierCode", "vendorCode"))
_SUPPLIER_NAME = FieldAlias("supplier_name", ("supplierName", "vendorName"))
_ORDER_DATE = FieldAlias("order_date", ("orderDate", "createdAt"), required=True)
_REQUISITION_ID = FieldAlias("requisition_id", ("requisitionId", "purchaseRequisitionId"))
_REQUISITION_LINE_ID = FieldAlias("requisition_line_id", ("requisitionLineId", "requisitionItemId"))
_EXPECTED_DATE = FieldAlias("expected_date", ("expectedDate", "expectedDeliveryDate"))
_SHIPPING_ADDRESS = FieldAlias("shipping_address", ("shippingAddress",))
_PAYMENT_TERMS = FieldAlias("payment_terms", ("paymentTerms",))
_ORDERED_BY = FieldAlias("ordered_by", ("orderedBy", "createdById"))
_RECEIVED_QTY = FieldAlias("received_quantity", ("receivedQty", "receivedQuantity"), default=ZERO)
_ACCEPTED_QTY = FieldAlias("accepted_quantity", ("acceptedQty", "acceptedQuantity"))
_REJECTED_QTY = FieldAlias("rejected_quantity", ("rejectedQty", "rejectedQuantity"), default=ZERO)

# Goods receipt
_RECEIPT_NO = FieldAlias("document_no", ("receiptNumber", "receiptNo", "grnNumber"))
_RECEIPT_ORDER_ID = FieldAlias("order_id", ("purchaseOrderId", "orderId"), required=True)
_RECEIPT_DATE = FieldAlias("receipt_date", ("receivedAt", "receiptDate", "createdAt"), required=True)
_RECEIVED_BY = FieldAlias("received_by", ("receivedBy", "receivedByName"))
_ORDER_LINE_ID = FieldAlias("order_line_id", ("orderItemId", "orderLineId", "purchaseOrderItemId"))
_ORDERED_QTY = FieldAlias("ordered_quantity", ("orderedQty", "orderedQuantity"))
_LINE_RECEIVED_QTY = FieldAlias("received_quantity", ("receivedQty", "receivedQuantity"), required=True)
_QUALITY_STATUS = FieldAlias("quality_status", ("qualityStatus",))
_BATCH_NO = FieldAlias("batch_no", ("batchNo", "batchNumber"))
_LOT_NO = FieldAlias("lot_no", ("lotNo", "lotNumber"))
_EXPIRY_DATE = FieldAlias("expiry_date", ("expiryDate",))

# Backend words for states the domain names differently
_REQUISITION_STATUS_ALIASES = {"submitted": "pending"}
_PO_STATUS_ALIASES = {"submitted": "pending", "confirmed": "ordered"}

_REQUISITION_KEYS = ("requisitionNumber", "requisition_number", "requestedQty")
_ORDER_KEYS = ("orderNumber", "order_number", "supplierId")


def _document_no(
    raw: Mapping[str, Any], alias: FieldAlias, shape: WireShape, prefix: str, doc_id: str
) -> str:
    """Wire document number, else ``<PREFIX>-<id>``."""
    value = pick(raw, alias, shape)
    return coerce_text(value, shape, alias.target) if value is not None else f"{prefix}-{doc_id}"


def _received_split(
    raw: Mapping[str, Any], shape: WireShape, received: FieldAlias
) -> tuple[Decimal, Decimal, Decimal]:
    """(received, accepted, rejected); accepted defaults to received - rejected."""
    received_qty = coerce_decimal(pick(raw, received, shape), shape, received.target)
    rejected = coerce_decimal(pick(raw, _REJECTED_QTY, shape), shape, "rejected_quantity")
    accepted = pick_as(raw, _ACCEPTED_QTY, shape, coerce_decimal)
    if accepted is None:
        accepted = received_qty - rejected
    return received_qty, accepted, rejected


# -----------------------------------------------------------------------------
# Inbound
# -----------------------------------------------------------------------------


def normalize_requisition(payload: Any) -> Requisition:
    shape = WireShape.REQUISITION
    raw = require_mapping(payload, shape)
    requisition_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    currency = coerce_text(pick(raw, CURRENCY, shape), shape, "currency").upper()
    places = currency_places(currency)

    lines = []
    for index, entry in enumerate(require_list(raw.get("items"), shape, "items")):
        line_raw = require_mapping(entry, shape, field="items")
        fields = priced_line_fields(line_raw, shape, places, quantity=_REQUESTED_QTY)
        line = build(
            RequisitionLine,
            shape,
            id=line_id(line_raw, shape, requisition_id, index),
            warehouse_id=pick_as(line_raw, WAREHOUSE_ID, shape, coerce_id),
            notes=optional_text(line_raw, NOTES, shape),
            **fields,
        )
        lines.append(reconciled_line(line, line_raw, shape, places))

    requisition = Requisition(
        id=requisition_id,
        document_no=_document_no(raw, _REQUISITION_NO, shape, "PR", requisition_id),
        requested_by=coerce_text(pick(raw, _REQUESTED_BY, shape), shape, "requested_by"),
        requested_date=coerce_date(pick(raw, _REQUESTED_DATE, shape), shape, "requested_date"),
        status=parse_wire_status(
            RequisitionStatus, pick(raw, _STATUS, shape), shape,
            _REQUISITION_STATUS_ALIASES, RequisitionStatus.DRAFT,
        ),
        lines=tuple(lines),
        currency=currency,
        department=optional_text(raw, _DEPARTMENT, shape),
        required_date=pick_as(raw, _REQUIRED_DATE, shape, coerce_date),
        notes=optional_text(raw, NOTES, shape),
        approved_by=optional_text(raw, _APPROVED_BY, shape),
        approved_date=pick_as(raw, _APPROVED_AT, shape, coerce_date),
        rejection_reason=optional_text(raw, _REJECTION_REASON, shape),
        created_at=pick_as(raw, _CREATED_AT, shape, coerce_datetime),
        updated_at=pick_as(raw, _UPDATED_AT, shape, coerce_datetime),
    )
    return reconciled_document(requisition, raw, shape)


def normalize_purchase_order(payload: Any) -> PurchaseOrder:
    """Purchase order, including cumulative receipt quantities when reported."""
    shape = WireShape.PURCHASE_ORDER
    raw = require_mapping(payload, shape)
    order_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    supplier_id = coerce_id(pick(raw, _SUPPLIER_ID, shape), shape, "supplier_id")
    currency = coerce_text(pick(raw, CURRENCY, shape), shape, "currency").upper()
    places = currency_places(currency)

    lines = []
    for index, entry in enumerate(require_list(raw.get("items"), shape, "items")):
        line_raw = require_mapping(entry, shape, field="items")
        received, accepted, rejected = _received_split(line_raw, shape, _RECEIVED_QTY)
        line = build(
            PurchaseOrderLine,
            shape,
            id=line_id(line_raw, shape, order_id, index),
            warehouse_id=pick_as(line_raw, WAREHOUSE_ID, shape, coerce_id),
            requisition_line_id=pick_as(line_raw, _REQUISITION_LINE_ID, shape, coerce_id),
            received_quantity=received,
            accepted_quantity=accepted,
            rejected_quantity=rejected,
            notes=optional_text(line_raw, NOTES, shape),
            **priced_line_fields(line_raw, shape, places),
        )
        lines.append(reconciled_line(line, line_raw, shape, places))

    order = PurchaseOrder(
        id=order_id,
        document_no=_document_no(raw, _ORDER_NO, shape, "PO", order_id),
        supplier_id=supplier_id,
        order_date=coerce_date(pick(raw, _ORDER_DATE, shape), shape, "order_date"),
        status=parse_wire_status(
            POStatus, pick(raw, _STATUS, shape), shape, _PO_STATUS_ALIASES, POStatus.DRAFT
        ),
        lines=tuple(lines),
        currency=currency,
        supplier=snapshot(
            supplier_id, pick(raw, _SUPPLIER_CODE, shape), pick(raw, _SUPPLIER_NAME, shape), shape
        ),
        requisition_id=pick_as(raw, _REQUISITION_ID, shape, coerce_id),
        expected_date=pick_as(raw, _EXPECTED_DATE, shape, coerce_date),
        shipping_address=optional_text(raw, _SHIPPING_ADDRESS, shape),
        payment_terms=optional_text(raw, _PAYMENT_TERMS, shape),
        notes=optional_text(raw, NOTES, shape),
        ordered_by=pick_as(raw, _ORDERED_BY, shape, coerce_id),
        approved_by=optional_text(raw, _APPROVED_BY, shape),
        approved_date=pick_as(raw, _APPROVED_AT, shape, coerce_date),
        created_at=pick_as(raw, _CREATED_AT, shape, coerce_datetime),
        updated_at=pick_as(raw, _UPDATED_AT, shape, coerce_datetime),
    )
    return reconciled_document(order, raw, shape)


def _receipt_order_line(
    line_raw: Mapping[str, Any],
    shape: WireShape,
    order: PurchaseOrder | None,
    order_id: str,
    item_id: str,
    index: int,
) -> PurchaseOrderLine | str:
    """The order line a receipt line reports against, or its id when no order is given."""
    explicit = pick_as(line_raw, _ORDER_LINE_ID, shape, coerce_id)
    if order is None:
        return explicit or f"{order_id}-{index + 1}"
    if explicit is not None:
        for line in order.lines:
            if line.id == explicit:
                return line
        raise UnexpectedResponseShapeError(
            shape.value, f"order {order.id} has no line {explicit}", field="order_line_id"
        )
    matches = [line for line in order.lines if line.item_id == item_id]
    if len(matches) != 1:
        raise UnexpectedResponseShapeError(
            shape.value,
            f"item {item_id} matches {len(matches)} lines of order {order.id}",
            field="order_line_id",
        )
    return matches[0]


def normalize_goods_receipt(payload: Any, order: PurchaseOrder | None = None) -> GoodsReceipt:
    """Goods receipt; ``order`` resolves lines that only carry an item id.

    Without ``order`` the ordered quantity comes from the payload and
    defaults to the received quantity.  Receipts without a status are
    ``completed``; lines without a quality status derive it from the
    accepted/rejected split.
    """
    shape = WireShape.GOODS_RECEIPT
    raw = require_mapping(payload, shape)
    receipt_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    order_id = coerce_id(pick(raw, _RECEIPT_ORDER_ID, shape), shape, "order_id")
    if order is not None and order.id != order_id:
        raise UnexpectedResponseShapeError(
            shape.value, f"receipt is for order {order_id}, not {order.id}", field="order_id"
        )

    lines = []
    for index, entry in enumerate(require_list(raw.get("items"), shape, "items")):
        line_raw = require_mapping(entry, shape, field="items")
        item_id = coerce_id(pick(line_raw, ITEM_ID, shape), shape, "item_id")
        received, accepted, rejected = _received_split(line_raw, shape, _LINE_RECEIVED_QTY)
        order_line = _receipt_order_line(line_raw, shape, order, order_id, item_id, index)
        if isinstance(order_line, str):
            order_line_id = order_line
            ordered = pick_as(line_raw, _ORDERED_QTY, shape, coerce_decimal)
            if ordered is None:
                ordered = received
            warehouse_id = pick_as(line_raw, WAREHOUSE_ID, shape, coerce_id)
        else:
            order_line_id = order_line.id
            ordered = order_line.quantity
            warehouse_id = pick_as(line_raw, WAREHOUSE_ID, shape, coerce_id) or order_line.warehouse_id
        quality = pick(line_raw, _QUALITY_STATUS, shape)
        lines.append(
            build(
                GoodsReceiptLine,
                shape,
                id=line_id(line_raw, shape, receipt_id, index),
                order_line_id=order_line_id,
                item_id=item_id,
                ordered_quantity=ordered,
                received_quantity=received,
                accepted_quantity=accepted,
                rejected_quantity=rejected,
                quality_status=(
                    parse_wire_status(QualityStatus, quality, shape) if quality is not None
                    else QualityStatus.from_quantities(accepted, rejected)
                ),
                warehouse_id=warehouse_id,
                batch_no=optional_text(line_raw, _BATCH_NO, shape),
                lot_no=optional_text(line_raw, _LOT_NO, shape),
                expiry_date=pick_as(line_raw, _EXPIRY_DATE, shape, coerce_date),
                notes=optional_text(line_raw, NOTES, shape),
            )
        )

    return GoodsReceipt(
        id=receipt_id,
        document_no=_document_no(raw, _RECEIPT_NO, shape, "GR", receipt_id),
        order_id=order_id,
        receipt_date=coerce_date(pick(raw, _RECEIPT_DATE, shape), shape, "receipt_date"),
        status=parse_wire_status(
            ReceiptStatus, pick(raw, _STATUS, shape), shape, default=ReceiptStatus.COMPLETED
        ),
        lines=tuple(lines),
        received_by=optional_text(raw, _RECEIVED_BY, shape),
        notes=optional_text(raw, NOTES, shape),
        created_at=pick_as(raw, _CREATED_AT, shape, coerce_datetime),
        updated_at=pick_as(raw, _UPDATED_AT, shape, coerce_datetime),
    )


def normalize_converted_order(payload: Any) -> PurchaseOrder:
    """Response of ``convert-to-po``; anything but a purchase order is rejected.

    Older backends answered with the converted requisition instead of the
    new order.  That response cannot be turned into a purchase order, so it
    is a hard failure rather than a guess.
    """
    shape = WireShape.CONVERTED_ORDER
    raw = require_mapping(payload, shape)
    if has_any(raw, *_ORDER_KEYS):
        order = normalize_purchase_order(raw)
        logger.info(
            "converted_order_normalized",
            extra={"order_id": order.id, "requisition_id": order.requisition_id},
        )
        return order
    if has_any(raw, *_REQUISITION_KEYS):
        raise UnexpectedResponseShapeError(
            shape.value, "expected a purchase order, got a requisition"
        )
    raise UnexpectedResponseShapeError(
        shape.value, "expected a purchase order, got keys " + ", ".join(sorted(raw))
    )


# -----------------------------------------------------------------------------
# Outbound
# -----------------------------------------------------------------------------


def requisition_payload(requisition: Requisition) -> dict[str, Any]:
    """``PurchaseRequisitionCreateDTO`` for a requisition."""
    return compact({
        "department": requisition.department,
        "requiredDate": wire_date(requisition.required_date),
        "notes": requisition.notes,
        "items": [
            compact({
                "itemId": wire_id(line.item_id),
                "requestedQty": wire_number(line.quantity),
                "estimatedPrice": wire_number(line.unit_price) if line.unit_price else None,
                "remarks": line.notes,
            })
            for line in requisition.lines
        ],
    })


def purchase_order_payload(order: PurchaseOrder) -> dict[str, Any]:
    """``PurchaseOrderCreateDTO`` for a purchase order."""
    return compact({
        "supplierId": wire_id(order.supplier_id),
        "orderDate": wire_date(order.order_date),
        "requisitionId": wire_id(order.requisition_id),
        "expectedDate": wire_date(order.expected_date),
        "shippingAddress": order.shipping_address,
        "paymentTerms": order.payment_terms,
        "notes": order.notes,
        "items": [
            compact({
                "itemId": wire_id(line.item_id),
                "quantity": wire_number(line.quantity),
                "unitCost": wire_number(line.unit_price),
                "discountPercent": wire_number(line.discount_percent) if line.discount_percent else None,
                "taxPercent": wire_number(line.tax_percent) if line.tax_percent else None,
                "lineTotal": wire_number(line.line_total),
            })
            for line in order.lines
        ],
    })


def goods_receipt_payload(receipt: GoodsReceipt) -> dict[str, Any]:
    """``GoodsReceiptCreateDTO`` for a goods receipt."""
    return {
        "purchaseOrderId": wire_id(receipt.order_id),
        "items": [
            compact({
                "itemId": wire_id(line.item_id),
                "receivedQty": wire_number(line.received_quantity),
                "acceptedQty": wire_number(line.accepted_quantity),
                "rejectedQty": wire_number(line.rejected_quantity),
                "batchNo": line.batch_no,
                "remarks": line.notes,
            })
            for line in receipt.lines
        ],
    }

