"""
Shared shapes of staged documents.

``DocumentType`` names every staged document the pipeline stores.
``PricedLine`` is the structural type the reconciler and aggregator work
on; requisition, order and invoice lines all satisfy it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol

from fulfillment_kernel.domain.values import ZERO


class DocumentType(str, Enum):
    """Every staged document type, as stored and logged."""

    REQUISITION = "requisition"
    PURCHASE_ORDER = "purchase_order"
    GOODS_RECEIPT = "goods_receipt"
    PURCHASE_INVOICE = "purchase_invoice"
    SALES_ORDER = "sales_order"
    PICKLIST = "picklist"
    DISPATCH = "dispatch"
    SALES_INVOICE = "sales_invoice"


class PricedLine(Protocol):
    """A line carrying quantity, price, discount and tax."""

    @property
    def id(self) -> str: ...

    @property
    def quantity(self) -> Decimal: ...

    @property
    def unit_price(self) -> Decimal: ...

    @property
    def discount_percent(self) -> Decimal: ...

    @property
    def tax_percent(self) -> Decimal: ...

    @property
    def line_total(self) -> Decimal: ...


@dataclass(frozen=True)
class DocumentTotals:
    """Header totals of a priced document.

    ``subtotal`` is the sum of post-discount, pre-tax line amounts;
    ``total`` is always ``subtotal + tax``.
    """

    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO

    def as_fields(self) -> dict[str, Decimal]:
        """Keyword arguments for ``dataclasses.replace`` on a document."""
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount,
            "tax_amount": self.tax,
            "total_amount": self.total,
        }
