"""
fulfillment_ingestion -- Backend DTO normalization.

Maps the backend's wire DTOs (camelCase, integer ids, several historical
field spellings) onto the frozen domain documents, and domain documents back
onto request payloads.  Every source shape has one explicit mapping
function; call sites never look up alternative field names themselves.

Architecture:
    fulfillment_ingestion/ is a top-level package.  It imports from
    fulfillment_kernel, fulfillment_engines and the module models.  Nothing
    in kernel/, engines/, modules/ or services/ imports from ingestion.
"""

from fulfillment_ingestion.endpoints import ENDPOINTS, Endpoint, endpoint_for
from fulfillment_ingestion.normalizers import (
    goods_receipt_payload,
    invoice_payload,
    normalize_converted_order,
    normalize_customer,
    normalize_goods_receipt,
    normalize_invoice,
    normalize_item,
    normalize_picklist,
    normalize_purchase_order,
    normalize_requisition,
    normalize_sales_order,
    normalize_shipment,
    normalize_supplier,
    normalize_warehouse,
    purchase_order_payload,
    requisition_payload,
    sales_order_payload,
    serialize_status,
    shipment_payload,
)

__all__ = [
    "ENDPOINTS",
    "Endpoint",
    "endpoint_for",
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
