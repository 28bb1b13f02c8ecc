"""
Purchasing Domain Models.

The nouns of purchasing: requisitions, purchase orders, goods receipts.
Purchase invoices share the invoice model in ``fulfillment_modules.invoicing``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from fulfillment_kernel.domain.catalog import ReferenceSnapshot
from fulfillment_kernel.domain.values import ZERO
from fulfillment_kernel.exceptions import OverReceiptError, QuantityMismatchError, ValidationError
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.models")


class RequisitionStatus(str, Enum):
    """Requisition lifecycle states."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class POStatus(str, Enum):
    """Purchase order lifecycle states."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    ORDERED = "ordered"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class ReceiptStatus(str, Enum):
    """Goods receipt processing states."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QualityStatus(str, Enum):
    """Inspection outcome of one receipt line."""
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"

    @property
    def is_resolved(self) -> bool:
        return self is not QualityStatus.PENDING

    @classmethod
    def from_quantities(cls, accepted: Decimal, rejected: Decimal) -> QualityStatus:
        """Outcome implied by the accepted/rejected split of a line."""
        if rejected == ZERO:
            return cls.PASSED
        if accepted == ZERO:
            return cls.FAILED
        return cls.PARTIAL


# Purchase orders accept goods receipts only in these statuses
RECEIVABLE_PO_STATUSES = frozenset({POStatus.ORDERED, POStatus.PARTIALLY_RECEIVED})


@dataclass(frozen=True)
class RequisitionLine:
    """A line item on a purchase requisition, priced with estimates."""
    id: str
    item_id: str
    quantity: Decimal
    unit_price: Decimal = ZERO
    discount_percent: Decimal = ZERO
    tax_percent: Decimal = ZERO
    line_total: Decimal = ZERO
    item: ReferenceSnapshot | None = None
    warehouse_id: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Requisition:
    """An internal request to purchase, before any supplier commitment."""
    id: str
    document_no: str
    requested_by: str
    requested_date: date
    status: RequisitionStatus = RequisitionStatus.DRAFT
    lines: tuple[RequisitionLine, ...] = field(default_factory=tuple)
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    currency: str = "INR"
    department: str | None = None
    required_date: date | None = None
    notes: str | None = None
    approved_by: str | None = None
    approved_date: date | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PurchaseOrderLine:
    """A line item on a purchase order.

    ``received_quantity``, ``accepted_quantity`` and ``rejected_quantity``
    are cumulative over completed goods receipts and are maintained by the
    purchasing service, never edited directly.
    """
    id: str
    item_id: str
    quantity: Decimal
    unit_price: Decimal = ZERO
    discount_percent: Decimal = ZERO
    tax_percent: Decimal = ZERO
    line_total: Decimal = ZERO
    item: ReferenceSnapshot | None = None
    warehouse_id: str | None = None
    requisition_line_id: str | None = None
    received_quantity: Decimal = ZERO
    accepted_quantity: Decimal = ZERO
    rejected_quantity: Decimal = ZERO
    notes: str | None = None

    def __post_init__(self):
        if self.received_quantity > self.quantity:
            logger.warning(
                "po_line_over_receipt",
                extra={
                    "po_line_id": self.id,
                    "quantity": str(self.quantity),
                    "received_quantity": str(self.received_quantity),
                },
            )
            raise OverReceiptError(
                ordered=str(self.quantity),
                previously_received=str(ZERO),
                received=str(self.received_quantity),
                line_id=self.id,
            )
        if self.accepted_quantity + self.rejected_quantity != self.received_quantity:
            raise QuantityMismatchError(
                received=str(self.received_quantity),
                accepted=str(self.accepted_quantity),
                rejected=str(self.rejected_quantity),
                line_id=self.id,
            )

    @property
    def outstanding_quantity(self) -> Decimal:
        return self.quantity - self.received_quantity


@dataclass(frozen=True)
class PurchaseOrder:
    """A commercial commitment to a supplier."""
    id: str
    document_no: str
    supplier_id: str
    order_date: date
    status: POStatus = POStatus.DRAFT
    lines: tuple[PurchaseOrderLine, ...] = field(default_factory=tuple)
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    currency: str = "INR"
    supplier: ReferenceSnapshot | None = None
    requisition_id: str | None = None
    expected_date: date | None = None
    shipping_address: str | None = None
    payment_terms: str | None = None
    notes: str | None = None
    ordered_by: str | None = None
    approved_by: str | None = None
    approved_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_received(self) -> Decimal:
        return sum((ln.received_quantity for ln in self.lines), ZERO)


@dataclass(frozen=True)
class GoodsReceiptLine:
    """Receipt and inspection of one purchase order line."""
    id: str
    order_line_id: str
    item_id: str
    ordered_quantity: Decimal
    received_quantity: Decimal
    accepted_quantity: Decimal
    rejected_quantity: Decimal = ZERO
    quality_status: QualityStatus = QualityStatus.PENDING
    warehouse_id: str | None = None
    batch_no: str | None = None
    lot_no: str | None = None
    expiry_date: date | None = None
    notes: str | None = None

    def __post_init__(self):
        for name in ("received_quantity", "accepted_quantity", "rejected_quantity"):
            value = getattr(self, name)
            if value < ZERO:
                raise ValidationError(
                    f"{name} must not be negative, got {value} (line {self.id})",
                    field=name,
                    value=str(value),
                )
        if self.accepted_quantity + self.rejected_quantity != self.received_quantity:
            logger.warning(
                "receipt_line_quantity_mismatch",
                extra={
                    "receipt_line_id": self.id,
                    "received_quantity": str(self.received_quantity),
                    "accepted_quantity": str(self.accepted_quantity),
                    "rejected_quantity": str(self.rejected_quantity),
                },
            )
            raise QuantityMismatchError(
                received=str(self.received_quantity),
                accepted=str(self.accepted_quantity),
                rejected=str(self.rejected_quantity),
                line_id=self.id,
            )


@dataclass(frozen=True)
class GoodsReceipt:
    """Physical receipt of goods against a purchase order."""
    id: str
    document_no: str
    order_id: str
    receipt_date: date
    status: ReceiptStatus = ReceiptStatus.PENDING
    lines: tuple[GoodsReceiptLine, ...] = field(default_factory=tuple)
    received_by: str | None = None
    inspected_by: str | None = None
    inspection_date: date | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def counts_toward_order(self) -> bool:
        """Completed receipts drive the purchase order's received quantities."""
        return self.status == ReceiptStatus.COMPLETED

    @property
    def reserves_quantity(self) -> bool:
        """Non-cancelled receipts reserve quantity against over-receipt."""
        return self.status != ReceiptStatus.CANCELLED
