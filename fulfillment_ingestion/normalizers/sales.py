"""
Sales normalizers: sales orders, picklists, shipments (dispatches).

Wire shapes (backend v3):

* Sales order -- ``{id, orderNumber, customerId, customerName, orderDate,
  status, totalAmount, items: [{itemId, itemName, warehouseId, quantity,
  unitPrice, lineTotal}]}``
* Picklist -- ``{id, picklistNumber, salesOrderId, status, createdAt,
  items: [{itemId, quantity}]}``.  The backend calls a completed picklist
  ``picked``.
* Shipment -- ``{id, shipmentNumber, picklistId, customerId, status,
  carrierName, trackingNumber, dispatchedAt, deliveredAt,
  trackingHistory: [{status, timestamp, location, notes}]}``
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fulfillment_ingestion.domain.types import FieldAlias, WireShape
from fulfillment_ingestion.mapping.engine import (
    build,
    coerce_date,
    coerce_datetime,
    coerce_decimal,
    coerce_id,
    coerce_text,
    compact,
    parse_wire_status,
    pick,
    pick_as,
    require_list,
    require_mapping,
    wire_date,
    wire_id,
    wire_number,
)
from fulfillment_ingestion.normalizers.common import (
    CURRENCY,
    ITEM_ID,
    NOTES,
    QUANTITY,
    WAREHOUSE_ID,
    line_id,
    optional_text,
    priced_line_fields,
    reconciled_document,
    reconciled_line,
    snapshot,
)
from fulfillment_kernel.domain.values import currency_places
from fulfillment_kernel.exceptions import UnexpectedResponseShapeError
from fulfillment_kernel.logging_config import get_logger
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

logger = get_logger("ingestion.normalizers.sales")

_ID = FieldAlias("id", ("id",), required=True)
_STATUS = FieldAlias("status", ("status",))
_CREATED_AT = FieldAlias("created_at", ("createdAt",))
_UPDATED_AT = FieldAlias("updated_at", ("updatedAt", "createdAt"))

# Sales order
_ORDER_NO = FieldAlias("document_no", ("orderNumber", "orderNo"))
_CUSTOMER_ID = FieldAlias("customer_id", ("customerId",), required=True)
_CUSTOMER_CODE = FieldAlias("customer_code", ("customerCode",))
_CUSTOMER_NAME = FieldAlias("customer_name", ("customerName",))
_ORDER_DATE = FieldAlias("order_date", ("orderDate", "createdAt"), required=True)
_REQUIRED_DATE = FieldAlias("required_date", ("requiredDate", "deliveryDate"))
_SHIPPING_ADDRESS = FieldAlias("shipping_address", ("shippingAddress",))
_BILLING_ADDRESS = FieldAlias("billing_address", ("billingAddress",))
_PAYMENT_TERMS = FieldAlias("payment_terms", ("paymentTerms",))
_SALES_PERSON = FieldAlias("sales_person", ("salesPerson", "salesPersonName"))
_WAREHOUSE_CODE = FieldAlias("warehouse_code", ("warehouseCode",))
_WAREHOUSE_NAME = FieldAlias("warehouse_name", ("warehouseName",))

# Picklist
_PICKLIST_NO = FieldAlias("document_no", ("picklistNumber", "picklistNo"))
_PICKLIST_ORDER_ID = FieldAlias("order_id", ("salesOrderId", "orderId"), required=True)
_ORDER_LINE_ID = FieldAlias("order_line_id", ("orderItemId", "orderLineId", "salesOrderItemId"))
_PICKED_QTY = FieldAlias("picked_quantity", ("pickedQty", "pickedQuantity"))
_BIN_LOCATION = FieldAlias("bin_location", ("binLocation",))
_BATCH_NO = FieldAlias("batch_no", ("batchNo", "batchNumber"))
_ASSIGNED_TO = FieldAlias("assigned_to", ("assignedTo", "assignedToName"))
_STARTED_AT = FieldAlias("started_at", ("startedAt", "startTime"))
_COMPLETED_AT = FieldAlias("completed_at", ("completedAt", "completedTime", "pickedAt"))
_HOLD_REASON = FieldAlias("hold_reason", ("holdReason",))

# Shipment
_SHIPMENT_NO = FieldAlias("document_no", ("shipmentNumber", "dispatchNumber", "dispatchNo"))
_PICKLIST_ID = FieldAlias("picklist_id", ("picklistId",), required=True)
_SHIPMENT_ORDER_ID = FieldAlias("order_id", ("salesOrderId", "orderId"))
_SHIPMENT_CUSTOMER_ID = FieldAlias("customer_id", ("customerId",))
_CARRIER = FieldAlias("carrier_name", ("carrierName", "carrier"))
_TRACKING_NUMBER = FieldAlias("tracking_number", ("trackingNumber",))
_VEHICLE = FieldAlias("vehicle_number", ("vehicleNumber",))
_DRIVER = FieldAlias("driver_name", ("driverName",))
_DRIVER_PHONE = FieldAlias("driver_phone", ("driverPhone",))
_DELIVERY_ADDRESS = FieldAlias("delivery_address", ("deliveryAddress",))
_ESTIMATED_DELIVERY = FieldAlias("estimated_delivery_date", ("estimatedDeliveryDate",))
_DISPATCHED_AT = FieldAlias("dispatched_at", ("dispatchedAt",))
_DELIVERED_AT = FieldAlias("delivered_at", ("deliveredAt", "actualDeliveryDate"))
_CREATED_BY = FieldAlias("created_by", ("createdBy", "createdByName"))
_TRACKING = FieldAlias("tracking", ("trackingHistory", "tracking", "events"))

# Tracking event
_EVENT_STATUS = FieldAlias("status", ("status",), required=True)
_EVENT_TIME = FieldAlias("timestamp", ("timestamp", "eventTime", "createdAt"), required=True)
_EVENT_LOCATION = FieldAlias("location", ("location",))
_RECORDED_BY = FieldAlias("recorded_by", ("recordedBy", "deliveredBy", "updatedBy"))
_DELIVERED_TO = FieldAlias("delivered_to", ("deliveredTo", "receivedBy"))

_SALES_ORDER_STATUS_ALIASES = {"shipped": "dispatched"}
_PICKLIST_STATUS_ALIASES = {"picked": "completed", "picking": "in_progress"}
_DISPATCH_STATUS_ALIASES = {"shipped": "dispatched"}


def _document_no(
    raw: Mapping[str, Any], alias: FieldAlias, shape: WireShape, prefix: str, doc_id: str
) -> str:
    value = pick(raw, alias, shape)
    return coerce_text(value, shape, alias.target) if value is not None else f"{prefix}-{doc_id}"


# -----------------------------------------------------------------------------
# Inbound
# -----------------------------------------------------------------------------


def normalize_sales_order(payload: Any) -> SalesOrder:
    shape = WireShape.SALES_ORDER
    raw = require_mapping(payload, shape)
    order_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    customer_id = coerce_id(pick(raw, _CUSTOMER_ID, shape), shape, "customer_id")
    currency = coerce_text(pick(raw, CURRENCY, shape), shape, "currency").upper()
    places = currency_places(currency)

    lines = []
    for index, entry in enumerate(require_list(raw.get("items"), shape, "items")):
        line_raw = require_mapping(entry, shape, field="items")
        warehouse_id = pick_as(line_raw, WAREHOUSE_ID, shape, coerce_id)
        line = build(
            SalesOrderLine,
            shape,
            id=line_id(line_raw, shape, order_id, index),
            warehouse_id=warehouse_id,
            warehouse=(
                snapshot(
                    warehouse_id,
                    pick(line_raw, _WAREHOUSE_CODE, shape),
                    pick(line_raw, _WAREHOUSE_NAME, shape),
                    shape,
                )
                if warehouse_id is not None else None
            ),
            notes=optional_text(line_raw, NOTES, shape),
            **priced_line_fields(line_raw, shape, places),
        )
        lines.append(reconciled_line(line, line_raw, shape, places))

    order = SalesOrder(
        id=order_id,
        document_no=_document_no(raw, _ORDER_NO, shape, "SO", order_id),
        customer_id=customer_id,
        order_date=coerce_date(pick(raw, _ORDER_DATE, shape), shape, "order_date"),
        status=parse_wire_status(
            SalesOrderStatus, pick(raw, _STATUS, shape), shape,
            _SALES_ORDER_STATUS_ALIASES, SalesOrderStatus.DRAFT,
        ),
        lines=tuple(lines),
        currency=currency,
        customer=snapshot(
            customer_id, pick(raw, _CUSTOMER_CODE, shape), pick(raw, _CUSTOMER_NAME, shape), shape
        ),
        required_date=pick_as(raw, _REQUIRED_DATE, shape, coerce_date),
        shipping_address=optional_text(raw, _SHIPPING_ADDRESS, shape),
        billing_address=optional_text(raw, _BILLING_ADDRESS, shape),
        payment_terms=optional_text(raw, _PAYMENT_TERMS, shape),
        sales_person=optional_text(raw, _SALES_PERSON, shape),
        notes=optional_text(raw, NOTES, shape),
        created_at=pick_as(raw, _CREATED_AT, shape, coerce_datetime),
        updated_at=pick_as(raw, _UPDATED_AT, shape, coerce_datetime),
    )
    return reconciled_document(order, raw, shape)


def _picklist_order_line(
    line_raw: Mapping[str, Any],
    shape: WireShape,
    order: SalesOrder | None,
    item_id: str,
) -> SalesOrderLine | None:
    if order is None:
        return None
    explicit = pick_as(line_raw, _ORDER_LINE_ID, shape, coerce_id)
    candidates = [
        line for line in order.lines
        if (line.id == explicit if explicit is not None else line.item_id == item_id)
    ]
    if len(candidates) != 1:
        raise UnexpectedResponseShapeError(
            shape.value,
            f"line for item {item_id} matches {len(candidates)} lines of order {order.id}",
            field="order_line_id",
        )
    return candidates[0]


def _picklist_warehouse(
    raw: Mapping[str, Any],
    shape: WireShape,
    order: SalesOrder | None,
    default_warehouse_id: str | None,
) -> str:
    """Wire warehouse, else the single warehouse of the order's lines, else the default."""
    explicit = pick_as(raw, WAREHOUSE_ID, shape, coerce_id)
    if explicit is not None:
        return explicit
    if order is not None:
        warehouses = {line.warehouse_id for line in order.lines if line.warehouse_id}
        if len(warehouses) == 1:
            return warehouses.pop()
    if default_warehouse_id is not None:
        return default_warehouse_id
    raise UnexpectedResponseShapeError(
        shape.value, "picklist carries no warehouse and none can be derived", field="warehouse_id"
    )


def normalize_picklist(
    payload: Any,
    order: SalesOrder | None = None,
    default_warehouse_id: str | None = None,
) -> Picklist:
    """Picklist; ``order`` links item-only lines back to their order lines.

    The backend omits the warehouse; it is taken from the order's lines when
    they agree, else from ``default_warehouse_id``.
    """
    shape = WireShape.PICKLIST
    raw = require_mapping(payload, shape)
    picklist_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    order_id = coerce_id(pick(raw, _PICKLIST_ORDER_ID, shape), shape, "order_id")
    if order is not None and order.id != order_id:
        raise UnexpectedResponseShapeError(
            shape.value, f"picklist is for order {order_id}, not {order.id}", field="order_id"
        )
    status = parse_wire_status(
        PicklistStatus, pick(raw, _STATUS, shape), shape,
        _PICKLIST_STATUS_ALIASES, PicklistStatus.CREATED,
    )

    lines = []
    for index, entry in enumerate(require_list(raw.get("items"), shape, "items")):
        line_raw = require_mapping(entry, shape, field="items")
        item_id = coerce_id(pick(line_raw, ITEM_ID, shape), shape, "item_id")
        order_line = _picklist_order_line(line_raw, shape, order, item_id)
        ordered = coerce_decimal(pick(line_raw, QUANTITY, shape), shape, "quantity")
        picked = pick_as(line_raw, _PICKED_QTY, shape, coerce_decimal)
        if picked is None and status == PicklistStatus.COMPLETED:
            picked = ordered
        lines.append(
            build(
                PicklistLine,
                shape,
                id=line_id(line_raw, shape, picklist_id, index),
                order_line_id=(
                    order_line.id if order_line is not None
                    else pick_as(line_raw, _ORDER_LINE_ID, shape, coerce_id) or f"{order_id}-{index + 1}"
                ),
                item_id=item_id,
                ordered_quantity=ordered,
                picked_quantity=picked,
                item=order_line.item if order_line is not None else None,
                warehouse_id=pick_as(line_raw, WAREHOUSE_ID, shape, coerce_id),
                bin_location=optional_text(line_raw, _BIN_LOCATION, shape),
                batch_no=optional_text(line_raw, _BATCH_NO, shape),
                notes=optional_text(line_raw, NOTES, shape),
            )
        )

    return Picklist(
        id=picklist_id,
        document_no=_document_no(raw, _PICKLIST_NO, shape, "PL", picklist_id),
        order_id=order_id,
        warehouse_id=_picklist_warehouse(raw, shape, order, default_warehouse_id),
        status=status,
        lines=tuple(lines),
        assigned_to=optional_text(raw, _ASSIGNED_TO, shape),
        started_at=pick_as(raw, _STARTED_AT, shape, coerce_datetime),
        completed_at=pick_as(raw, _COMPLETED_AT, shape, coerce_datetime),
        hold_reason=optional_text(raw, _HOLD_REASON, shape),
        notes=optional_text(raw, NOTES, shape),
        created_at=pick_as(raw, _CREATED_AT, shape, coerce_datetime),
        updated_at=pick_as(raw, _UPDATED_AT, shape, coerce_datetime),
    )


def _tracking_event(entry: Any, dispatch_id: str, index: int) -> DeliveryTrackingEvent:
    shape = WireShape.TRACKING_EVENT
    raw = require_mapping(entry, shape)
    return DeliveryTrackingEvent(
        id=line_id(raw, shape, dispatch_id, index),
        dispatch_id=dispatch_id,
        status=parse_wire_status(TrackingStatus, pick(raw, _EVENT_STATUS, shape), shape),
        timestamp=coerce_datetime(pick(raw, _EVENT_TIME, shape), shape, "timestamp"),
        location=optional_text(raw, _EVENT_LOCATION, shape),
        notes=optional_text(raw, NOTES, shape),
        recorded_by=optional_text(raw, _RECORDED_BY, shape),
        delivered_to=optional_text(raw, _DELIVERED_TO, shape),
    )


def normalize_shipment(payload: Any, order_id: str | None = None) -> Dispatch:
    """Shipment as a ``Dispatch`` with its tracking history.

    The backend links a shipment to its picklist only; pass ``order_id``
    when the payload does not name the sales order.  Tracking events must
    be in chronological order.
    """
    shape = WireShape.SHIPMENT
    raw = require_mapping(payload, shape)
    dispatch_id = coerce_id(pick(raw, _ID, shape), shape, "id")
    resolved_order_id = pick_as(raw, _SHIPMENT_ORDER_ID, shape, coerce_id) or order_id
    if resolved_order_id is None:
        raise UnexpectedResponseShapeError(
            shape.value, "shipment names no sales order", field="order_id"
        )

    tracking = tuple(
        _tracking_event(entry, dispatch_id, index)
        for index, entry in enumerate(require_list(pick(raw, _TRACKING, shape), shape, "tracking"))
    )
    for earlier, later in zip(tracking, tracking[1:]):
        if later.timestamp < earlier.timestamp:
            raise UnexpectedResponseShapeError(
                shape.value,
                f"tracking event {later.id} precedes {earlier.id}",
                field="tracking",
            )

    dispatch = Dispatch(
        id=dispatch_id,
        document_no=_document_no(raw, _SHIPMENT_NO, shape, "DSP", dispatch_id),
        picklist_id=coerce_id(pick(raw, _PICKLIST_ID, shape), shape, "picklist_id"),
        order_id=resolved_order_id,
        status=parse_wire_status(
            DispatchStatus, pick(raw, _STATUS, shape), shape,
            _DISPATCH_STATUS_ALIASES, DispatchStatus.CREATED,
        ),
        tracking=tracking,
        customer_id=pick_as(raw, _SHIPMENT_CUSTOMER_ID, shape, coerce_id),
        delivery_address=optional_text(raw, _DELIVERY_ADDRESS, shape),
        carrier_name=optional_text(raw, _CARRIER, shape),
        tracking_number=optional_text(raw, _TRACKING_NUMBER, shape),
        vehicle_number=optional_text(raw, _VEHICLE, shape),
        driver_name=optional_text(raw, _DRIVER, shape),
        driver_phone=optional_text(raw, _DRIVER_PHONE, shape),
        estimated_delivery_date=pick_as(raw, _ESTIMATED_DELIVERY, shape, coerce_date),
        dispatched_at=pick_as(raw, _DISPATCHED_AT, shape, coerce_datetime),
        delivered_at=pick_as(raw, _DELIVERED_AT, shape, coerce_datetime),
        notes=optional_text(raw, NOTES, shape),
        created_by=optional_text(raw, _CREATED_BY, shape),
        created_at=pick_as(raw, _CREATED_AT, shape, coerce_datetime),
        updated_at=pick_as(raw, _UPDATED_AT, shape, coerce_datetime),
    )
    logger.debug(
        "shipment_normalized",
        extra={"dispatch_id": dispatch_id, "tracking_events": len(tracking)},
    )
    return dispatch


# -----------------------------------------------------------------------------
# Outbound
# -----------------------------------------------------------------------------


def sales_order_payload(order: SalesOrder) -> dict[str, Any]:
    """``SalesOrderCreateDTO`` for a sales order."""
    return compact({
        "customerId": wire_id(order.customer_id),
        "orderDate": wire_date(order.order_date),
        "requiredDate": wire_date(order.required_date),
        "shippingAddress": order.shipping_address,
        "notes": order.notes,
        "items": [
            compact({
                "itemId": wire_id(line.item_id),
                "warehouseId": wire_id(line.warehouse_id),
                "quantity": wire_number(line.quantity),
                "unitPrice": wire_number(line.unit_price),
                "discountPercent": wire_number(line.discount_percent) if line.discount_percent else None,
                "taxPercent": wire_number(line.tax_percent) if line.tax_percent else None,
            })
            for line in order.lines
        ],
    })


def shipment_payload(details: DispatchDetails | Dispatch) -> dict[str, Any]:
    """``ShipmentCreateDTO`` from dispatch details or an existing dispatch."""
    return compact({
        "carrierName": details.carrier_name,
        "trackingNumber": details.tracking_number,
        "vehicleNumber": details.vehicle_number,
        "driverName": details.driver_name,
        "driverPhone": details.driver_phone,
        "estimatedDeliveryDate": wire_date(details.estimated_delivery_date),
        "deliveryAddress": details.delivery_address,
        "notes": details.notes,
    })
