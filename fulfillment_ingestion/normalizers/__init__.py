"""
Normalizers: one explicit mapping function per backend DTO shape.

Inbound ``normalize_*`` functions return frozen domain documents or raise
``UnexpectedResponseShapeError``.  Outbound ``*_payload`` functions return
plain dicts in the backend's request shape; integral numbers are ``int``
and all others exact ``Decimal``.
"""

from fulfillment_ingestion.normalizers.invoice import invoice_payload, normalize_invoice
from fulfillment_ingestion.normalizers.purchase import (
    goods_receipt_payload,
    normalize_converted_order,
    normalize_goods_receipt,
    normalize_purchase_order,
    normalize_requisition,
    purchase_order_payload,
    requisition_payload,
)
from fulfillment_ingestion.normalizers.reference import (
    normalize_customer,
    normalize_item,
    normalize_supplier,
    normalize_warehouse,
)
from fulfillment_ingestion.normalizers.sales import (
    normalize_picklist,
    normalize_sales_order,
    normalize_shipment,
    sales_order_payload,
    shipment_payload,
)
from fulfillment_kernel.domain.status import serialize_status

__all__ = [
    "goods_receipt_payload",
    "invoice_payload",
    "normalize_converted_order",
    "normalize_customer",
    "normalize_goods_receipt",
    "normalize_invoice",
    "normalize_item",
    "normalize_picklist",
    "normalize_purchase_order",
    "normalize_requisition",
    "normalize_sales_order",
    "normalize_shipment",
    "normalize_supplier",
    "normalize_warehouse",
    "purchase_order_payload",
    "requisition_payload",
    "sales_order_payload",
    "serialize_status",
    "shipment_payload",
]
