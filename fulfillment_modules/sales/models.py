"""
Sales Domain Models.

The nouns of sales fulfillment: sales orders, picklists, dispatches and
their delivery tracking history.  Sales invoices share the invoice model
in ``fulfillment_modules.invoicing``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from fulfillment_kernel.domain.catalog import ReferenceSnapshot
from fulfillment_kernel.domain.values import ZERO
from fulfillment_kernel.exceptions import OverPickError
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("modules.sales.models")


class SalesOrderStatus(str, Enum):
    """Sales order lifecycle states."""
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PICKED = "picked"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PicklistStatus(str, Enum):
    """Picklist lifecycle states.  The backend calls ``completed`` "picked"."""
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DispatchStatus(str, Enum):
    """Dispatch (shipment) lifecycle states."""
    CREATED = "created"
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class TrackingStatus(str, Enum):
    """Status snapshot carried by a delivery tracking event."""
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"


# Sales orders a picklist may be generated from
PICKABLE_ORDER_STATUSES = frozenset({SalesOrderStatus.DRAFT, SalesOrderStatus.CONFIRMED})

# Sales orders that may be invoiced
INVOICEABLE_ORDER_STATUSES = frozenset({
    SalesOrderStatus.CONFIRMED,
    SalesOrderStatus.PICKED,
    SalesOrderStatus.DISPATCHED,
    SalesOrderStatus.DELIVERED,
})


@dataclass(frozen=True)
class SalesOrderLine:
    """A line item on a sales order."""
    id: str
    item_id: str
    quantity: Decimal
    unit_price: Decimal = ZERO
    discount_percent: Decimal = ZERO
    tax_percent: Decimal = ZERO
    line_total: Decimal = ZERO
    item: ReferenceSnapshot | None = None
    warehouse_id: str | None = None
    warehouse: ReferenceSnapshot | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SalesOrder:
    """A customer order."""
    id: str
    document_no: str
    customer_id: str
    order_date: date
    status: SalesOrderStatus = SalesOrderStatus.DRAFT
    lines: tuple[SalesOrderLine, ...] = field(default_factory=tuple)
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    currency: str = "INR"
    customer: ReferenceSnapshot | None = None
    required_date: date | None = None
    shipping_address: str | None = None
    billing_address: str | None = None
    payment_terms: str | None = None
    sales_person: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PicklistLine:
    """One sales order line to gather.  ``picked_quantity`` is None until picked."""
    id: str
    order_line_id: str
    item_id: str
    ordered_quantity: Decimal
    picked_quantity: Decimal | None = None
    item: ReferenceSnapshot | None = None
    warehouse_id: str | None = None
    bin_location: str | None = None
    batch_no: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.picked_quantity is not None and self.picked_quantity > self.ordered_quantity:
            logger.warning(
                "picklist_line_over_pick",
                extra={
                    "picklist_line_id": self.id,
                    "ordered_quantity": str(self.ordered_quantity),
                    "picked_quantity": str(self.picked_quantity),
                },
            )
            raise OverPickError(
                ordered=str(self.ordered_quantity),
                picked=str(self.picked_quantity),
                line_id=self.id,
            )

    @property
    def is_short(self) -> bool:
        """Picked, but less than ordered."""
        return self.picked_quantity is not None and self.picked_quantity < self.ordered_quantity


@dataclass(frozen=True)
class Picklist:
    """Warehouse instruction to gather the items of a sales order."""
    id: str
    document_no: str
    order_id: str
    warehouse_id: str
    status: PicklistStatus = PicklistStatus.CREATED
    lines: tuple[PicklistLine, ...] = field(default_factory=tuple)
    warehouse: ReferenceSnapshot | None = None
    assigned_to: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    hold_reason: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_picked(self) -> Decimal:
        return sum(
            (ln.picked_quantity for ln in self.lines if ln.picked_quantity is not None),
            ZERO,
        )


@dataclass(frozen=True)
class DeliveryTrackingEvent:
    """One immutable entry of a dispatch's tracking history."""
    id: str
    dispatch_id: str
    status: TrackingStatus
    timestamp: datetime
    location: str | None = None
    notes: str | None = None
    recorded_by: str | None = None
    delivered_to: str | None = None


@dataclass(frozen=True)
class Dispatch:
    """Transport of a completed picklist to the customer."""
    id: str
    document_no: str
    picklist_id: str
    order_id: str
    status: DispatchStatus = DispatchStatus.CREATED
    tracking: tuple[DeliveryTrackingEvent, ...] = field(default_factory=tuple)
    customer_id: str | None = None
    delivery_address: str | None = None
    carrier_name: str | None = None
    tracking_number: str | None = None
    vehicle_number: str | None = None
    driver_name: str | None = None
    driver_phone: str | None = None
    estimated_delivery_date: date | None = None
    dispatched_at: datetime | None = None
    delivered_at: datetime | None = None
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status != DispatchStatus.CANCELLED

    @property
    def last_tracking_status(self) -> TrackingStatus | None:
        return self.tracking[-1].status if self.tracking else None


@dataclass(frozen=True)
class DispatchDetails:
    """Transport details supplied when a dispatch is created."""
    carrier_name: str | None = None
    tracking_number: str | None = None
    vehicle_number: str | None = None
    driver_name: str | None = None
    driver_phone: str | None = None
    delivery_address: str | None = None
    estimated_delivery_date: date | None = None
    notes: str | None = None
