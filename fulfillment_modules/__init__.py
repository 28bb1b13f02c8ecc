"""
Fulfillment Modules.

Thin orchestration layers over the fulfillment kernel, engines and
services.  Each module contains:
- Domain models (the nouns)
- Workflows (state machines)
- Configuration schemas (settings)
- A service facade (the verbs)

Modules:
- Purchasing: requisitions, purchase orders, goods receipts
- Sales: sales orders, picklists, dispatches and delivery tracking
- Invoicing: purchase and sales invoices, payments, overdue status
"""

from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_modules.invoicing.models import Invoice
from fulfillment_modules.purchasing.models import GoodsReceipt, PurchaseOrder, Requisition
from fulfillment_modules.sales.models import Dispatch, Picklist, SalesOrder

# Dataclass each stored document type decodes into
DOCUMENT_CLASSES: dict[DocumentType, type] = {
    DocumentType.REQUISITION: Requisition,
    DocumentType.PURCHASE_ORDER: PurchaseOrder,
    DocumentType.GOODS_RECEIPT: GoodsReceipt,
    DocumentType.PURCHASE_INVOICE: Invoice,
    DocumentType.SALES_ORDER: SalesOrder,
    DocumentType.PICKLIST: Picklist,
    DocumentType.DISPATCH: Dispatch,
    DocumentType.SALES_INVOICE: Invoice,
}

__all__ = ["DOCUMENT_CLASSES"]
