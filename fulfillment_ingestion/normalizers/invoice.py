"""
Invoice normalizer, shared by purchase and sales invoices.

Wire statuses come in display form ("Paid", "Unpaid", "Partially Paid",
"Overdue").  ``overdue`` is derived from the due date and never stored, so
a wire ``overdue`` maps to ``pending`` or ``partially_paid`` by the paid
amount.  Invoices listed without lines carry header amounts only; those
must still satisfy ``total == subtotal + tax``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
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
    NOTES,
    line_id,
    optional_text,
    priced_line_fields,
    reconciled_document,
    reconciled_line,
    snapshot,
)
from fulfillment_kernel.domain.status import canonical_token
from fulfillment_kernel.domain.values import ZERO, currency_places
from fulfillment_kernel.exceptions import UnexpectedResponseShapeError
from fulfillment_kernel.logging_config import get_logger
from fulfillment_modules.invoicing.models import Invoice, InvoiceKind, InvoiceLine, InvoiceStatus

logger = get_logger("ingestion.normalizers.invoice")

_ID = FieldAlias("id", ("id",), required=True)
_INVOICE_NO = FieldAlias("document_no", ("invoiceNumber", "invoiceNo"))
_KIND = FieldAlias("kind", ("kind", "invoiceType"))
_ORDER_ID = FieldAlias("order_id", ("orderId", "purchaseOrderId", "salesOrderId"), required=True)
_PARTY_ID = FieldAlias("party_id", ("partyId", "supplierId", "vendorId", "customerId"), required=True)
_PARTY_CODE = FieldAlias("party_code", ("supplierCode", "customerCode"))
_PARTY_NAME = FieldAlias("party_name", ("supplierName", "vendorName", "customerName"))
_INVOICE_DATE = FieldAlias("invoice_date", ("invoiceDate", "date"), required=True)
_DUE_DATE = FieldAlias("due_date", ("dueDate",), required=True)
_STATUS = FieldAlias("status", ("status",))
_ORDER_LINE_ID = FieldAlias("order_line_id", ("orderItemId", "orderLineId"))
_HEADER_TOTAL = FieldAlias("total_amount", ("totalAmount", "total", "amount"), required=True)
_SUBTOTAL = FieldAlias("subtotal", ("subtotal",))
_TAX = FieldAlias("tax_amount", ("taxAmount", "tax"), default=ZERO)
_DISCOUNT = FieldAlias("discount_amount", ("discountAmount", "discount"), default=ZERO)
_PAID = FieldAlias("paid_amount", ("paidAmount", "amountPaid"))
_PAYMENT_TERMS = FieldAlias("payment_terms", ("paymentTerms",))
_CREATED_AT = FieldAlias("created_at", ("createdAt",))
_UPDATED_AT = FieldAlias("updated_at", ("updatedAt", "createdAt"))

_STATUS_ALIASES = {
    "unpaid": "pending",
    "issued": "pending",
    "partial": "partially_paid",
}

_FALLBACK_PREFIX = {InvoiceKind.PURCHASE: "PINV", InvoiceKind.SALES: "INV"}

_PURCHASE_KEYS = ("purchaseOrderId", "supplierId", "vendorId", "supplierName", "vendorName")
_SALES_KEYS = ("salesOrderId", "customerId", "customerName")


def _kind(raw: Mapping[str, Any], shape: WireShape, kind: InvoiceKind | None) -> InvoiceKind:
    if kind is not None:
        return kind
    declared = pick(raw, _KIND, shape)
    if declared is not None:
        return parse_wire_status(InvoiceKind, declared, shape)
    is_purchase = has_any(raw, *_PURCHASE_KEYS)
    is_sales = has_any(raw, *_SALES_KEYS)
    if is_purchase == is_sales:
        raise UnexpectedResponseShapeError(
            shape.value, "cannot tell a purchase invoice from a sales invoice", field="kind"
        )
    return InvoiceKind.PURCHASE if is_purchase else InvoiceKind.SALES


def _status(raw: Mapping[str, Any], shape: WireShape, paid: Decimal) -> InvoiceStatus:
    value = pick(raw, _STATUS, shape)
    if isinstance(value, str) and canonical_token(value) == InvoiceStatus.OVERDUE.value:
        return InvoiceStatus.PARTIALLY_PAID if paid > ZERO else InvoiceStatus.PENDING
    return parse_wire_status(InvoiceStatus, value, shape, _STATUS_ALIASES, InvoiceStatus.DRAFT)


def normalize_invoice(payload: Any, kind: InvoiceKind | None = None) -> Invoice:
    """Invoice of ``kind``; inferred from the party fields when not given.

    A ``paid`` invoice without a paid amount is taken as fully paid.

    Raises:
        UnexpectedResponseShapeError: unknown kind or status, amounts that
            do not reconcile, or a paid amount outside ``[0, total]``.
    """
    shape = WireShape.INVOICE
    raw = require_mapping(payload, shape)
    invoice_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    invoice_kind = _kind(raw, shape, kind)
    currency = coerce_text(pick(raw, CURRENCY, shape), shape, "currency").upper()
    places = currency_places(currency)
    party_id = coerce_id(pick(raw, _PARTY_ID, shape), shape, "party_id")

    lines = []
    for index, entry in enumerate(require_list(raw.get("items"), shape, "items")):
        line_raw = require_mapping(entry, shape, field="items")
        line = build(
            InvoiceLine,
            shape,
            id=line_id(line_raw, shape, invoice_id, index),
            order_line_id=pick_as(line_raw, _ORDER_LINE_ID, shape, coerce_id),
            **priced_line_fields(line_raw, shape, places),
        )
        lines.append(reconciled_line(line, line_raw, shape, places))

    if lines:
        headers: dict[str, Decimal] = {}
    else:
        total = coerce_decimal(pick(raw, _HEADER_TOTAL, shape), shape, "total_amount", places)
        tax = coerce_decimal(pick(raw, _TAX, shape), shape, "tax_amount", places)
        subtotal = pick_as(raw, _SUBTOTAL, shape, coerce_decimal)
        if subtotal is None:
            subtotal = total - tax
        if subtotal + tax != total:
            raise UnexpectedResponseShapeError(
                shape.value, f"subtotal {subtotal} + tax {tax} != total {total}", field="total_amount"
            )
        headers = {
            "subtotal": subtotal,
            "tax_amount": tax,
            "discount_amount": coerce_decimal(pick(raw, _DISCOUNT, shape), shape, "discount_amount", places),
            "total_amount": total,
        }

    # Paid amount and status are applied once the total is known
    invoice = build(
        Invoice,
        shape,
        id=invoice_id,
        document_no=coerce_text(
            pick(raw, _INVOICE_NO, shape) or f"{_FALLBACK_PREFIX[invoice_kind]}-{invoice_id}",
            shape, "document_no",
        ),
        kind=invoice_kind,
        order_id=coerce_id(pick(raw, _ORDER_ID, shape), shape, "order_id"),
        party_id=party_id,
        invoice_date=coerce_date(pick(raw, _INVOICE_DATE, shape), shape, "invoice_date"),
        due_date=coerce_date(pick(raw, _DUE_DATE, shape), shape, "due_date"),
        lines=tuple(lines),
        currency=currency,
        party=snapshot(party_id, pick(raw, _PARTY_CODE, shape), pick(raw, _PARTY_NAME, shape), shape),
        payment_terms=optional_text(raw, _PAYMENT_TERMS, shape),
        notes=optional_text(raw, NOTES, shape),
        created_at=pick_as(raw, _CREATED_AT, shape, coerce_datetime),
        updated_at=pick_as(raw, _UPDATED_AT, shape, coerce_datetime),
        **headers,
    )
    if lines:
        invoice = reconciled_document(invoice, raw, shape)

    raw_paid = pick(raw, _PAID, shape)
    paid = coerce_decimal(raw_paid, shape, "paid_amount", places) if raw_paid is not None else None
    status = _status(raw, shape, paid or ZERO)
    if paid is None:
        paid = invoice.total_amount if status == InvoiceStatus.PAID else ZERO
    if paid < ZERO or paid > invoice.total_amount:
        raise UnexpectedResponseShapeError(
            shape.value,
            f"paid amount {paid} outside 0..{invoice.total_amount}",
            field="paid_amount",
        )
    if status == InvoiceStatus.PAID and paid != invoice.total_amount:
        raise UnexpectedResponseShapeError(
            shape.value,
            f"status paid but {paid} of {invoice.total_amount} received",
            field="paid_amount",
        )
    logger.debug(
        "invoice_normalized",
        extra={"invoice_id": invoice_id, "kind": invoice_kind.value, "status": status.value},
    )
    return replace(invoice, paid_amount=paid, status=status)


def invoice_payload(invoice: Invoice) -> dict[str, Any]:
    """Create payload for a purchase or sales invoice."""
    party_key = "supplierId" if invoice.kind is InvoiceKind.PURCHASE else "customerId"
    order_key = "purchaseOrderId" if invoice.kind is InvoiceKind.PURCHASE else "salesOrderId"
    return compact({
        "invoiceNumber": invoice.document_no,
        order_key: wire_id(invoice.order_id),
        party_key: wire_id(invoice.party_id),
        "invoiceDate": wire_date(invoice.invoice_date),
        "dueDate": wire_date(invoice.due_date),
        "status": invoice.status.value,
        "paymentTerms": invoice.payment_terms,
        "notes": invoice.notes,
        "subtotal": wire_number(invoice.subtotal),
        "taxAmount": wire_number(invoice.tax_amount),
        "discountAmount": wire_number(invoice.discount_amount),
        "totalAmount": wire_number(invoice.total_amount),
        "paidAmount": wire_number(invoice.paid_amount),
        "items": [
            compact({
                "orderItemId": wire_id(line.order_line_id),
                "itemId": wire_id(line.item_id),
                "quantity": wire_number(line.quantity),
                "unitPrice": wire_number(line.unit_price),
                "discountPercent": wire_number(line.discount_percent) if line.discount_percent else None,
                "taxPercent": wire_number(line.tax_percent) if line.tax_percent else None,
                "lineTotal": wire_number(line.line_total),
            })
            for line in invoice.lines
        ],
    })
