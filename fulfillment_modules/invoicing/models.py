"""
Invoicing Domain Models.

Purchase and sales invoices share one shape; ``kind`` tells them apart.
``OVERDUE`` is a display status derived from the due date.  It is never
stored and no transition targets it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from fulfillment_kernel.domain.catalog import ReferenceSnapshot
from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.domain.values import ZERO
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.models")


class InvoiceKind(str, Enum):
    PURCHASE = "purchase"
    SALES = "sales"

    @property
    def document_type(self) -> DocumentType:
        if self is InvoiceKind.PURCHASE:
            return DocumentType.PURCHASE_INVOICE
        return DocumentType.SALES_INVOICE


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"  # derived only
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class InvoiceLine:
    """A billed line, priced exactly like the order line it bills."""
    id: str
    item_id: str
    quantity: Decimal
    unit_price: Decimal = ZERO
    discount_percent: Decimal = ZERO
    tax_percent: Decimal = ZERO
    line_total: Decimal = ZERO
    item: ReferenceSnapshot | None = None
    order_line_id: str | None = None


@dataclass(frozen=True)
class Invoice:
    """A purchase (supplier) or sales (customer) invoice."""
    id: str
    document_no: str
    kind: InvoiceKind
    order_id: str
    party_id: str
    invoice_date: date
    due_date: date
    status: InvoiceStatus = InvoiceStatus.DRAFT
    lines: tuple[InvoiceLine, ...] = field(default_factory=tuple)
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    currency: str = "INR"
    party: ReferenceSnapshot | None = None
    payment_terms: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if self.status == InvoiceStatus.OVERDUE:
            raise ValueError("OVERDUE is derived from the due date and cannot be stored")
        if self.paid_amount < ZERO or self.paid_amount > self.total_amount:
            logger.warning(
                "invoice_paid_amount_out_of_range",
                extra={
                    "invoice_id": self.id,
                    "paid_amount": str(self.paid_amount),
                    "total_amount": str(self.total_amount),
                },
            )
            raise ValueError(
                f"paid_amount ({self.paid_amount}) must be between 0 and "
                f"total_amount ({self.total_amount})"
            )

    @property
    def balance_due(self) -> Decimal:
        return self.total_amount - self.paid_amount

    @property
    def is_settled(self) -> bool:
        return self.status == InvoiceStatus.PAID
