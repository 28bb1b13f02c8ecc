"""
Purchasing Module (``fulfillment_modules.purchasing``).

Responsibility
--------------
The procure-to-receive cycle: purchase requisitions, purchase orders
(direct or converted from an approved requisition), goods receipts with
quality inspection, and purchase invoices.

Invariants enforced
-------------------
* Cumulative received quantity per PO line never exceeds ordered.
* ``accepted + rejected == received`` on every receipt line.
* A PO with a non-cancelled receipt cannot be cancelled.
"""

from fulfillment_modules.purchasing.config import PurchasingConfig
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
from fulfillment_modules.purchasing.service import PurchasingService
from fulfillment_modules.purchasing.workflows import (
    GOODS_RECEIPT_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
)

__all__ = [
    "GOODS_RECEIPT_WORKFLOW",
    "GoodsReceipt",
    "GoodsReceiptLine",
    "POStatus",
    "PURCHASE_ORDER_WORKFLOW",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchasingConfig",
    "PurchasingService",
    "QualityStatus",
    "REQUISITION_WORKFLOW",
    "ReceiptStatus",
    "Requisition",
    "RequisitionLine",
    "RequisitionStatus",
]
