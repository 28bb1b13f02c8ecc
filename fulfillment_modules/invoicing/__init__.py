"""
Invoicing Module (``fulfillment_modules.invoicing``).

Purchase and sales invoices, payments and the derived overdue status.
"""

from fulfillment_modules.invoicing.config import InvoicingConfig
from fulfillment_modules.invoicing.models import (
    Invoice,
    InvoiceKind,
    InvoiceLine,
    InvoiceStatus,
)
from fulfillment_modules.invoicing.service import InvoicingService
from fulfillment_modules.invoicing.workflows import INVOICE_WORKFLOW

__all__ = [
    "INVOICE_WORKFLOW",
    "Invoice",
    "InvoiceKind",
    "InvoiceLine",
    "InvoiceStatus",
    "InvoicingConfig",
    "InvoicingService",
]
