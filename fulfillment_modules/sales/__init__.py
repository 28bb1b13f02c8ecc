"""
Sales Module (``fulfillment_modules.sales``).

Responsibility
--------------
The order-to-delivery cycle: sales orders, picklists, dispatches with
append-only delivery tracking, explicit completion, and sales invoices.
"""

from fulfillment_modules.sales.config import SalesConfig
from fulfillment_modules.sales.models import (
    DeliveryTrackingEvent,
    Dispatch,
    DispatchDetails,
    DispatchStatus,
    Picklist,
    PicklistLine,
    PicklistStatus,
    SalesOrder,
    SalesOrderLine,
    SalesOrderStatus,
    TrackingStatus,
)
from fulfillment_modules.sales.service import SalesService
from fulfillment_modules.sales.workflows import (
    DELIVERY_TRACKING_WORKFLOW,
    DISPATCH_WORKFLOW,
    PICKLIST_WORKFLOW,
    SALES_ORDER_WORKFLOW,
)

__all__ = [
    "DELIVERY_TRACKING_WORKFLOW",
    "DISPATCH_WORKFLOW",
    "DeliveryTrackingEvent",
    "Dispatch",
    "DispatchDetails",
    "DispatchStatus",
    "PICKLIST_WORKFLOW",
    "Picklist",
    "PicklistLine",
    "PicklistStatus",
    "SALES_ORDER_WORKFLOW",
    "SalesConfig",
    "SalesOrder",
    "SalesOrderLine",
    "SalesOrderStatus",
    "SalesService",
    "TrackingStatus",
]
