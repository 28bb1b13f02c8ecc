"""Tests for warehouse resolution and tracking history (fulfillment_engines)."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fulfillment_engines.delivery import append_tracking_event, verify_append_only
from fulfillment_engines.picking import pick_guard_context, resolve_line_warehouses
from fulfillment_kernel.exceptions import AmbiguousWarehouseError, ValidationError
from fulfillment_modules.sales.models import (
    DeliveryTrackingEvent,
    PicklistLine,
    SalesOrderLine,
    TrackingStatus,
)

T0 = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


def _line(line_id, warehouse_id):
    return SalesOrderLine(
        id=line_id, item_id="ITEM-1", quantity=Decimal("1"), warehouse_id=warehouse_id
    )


def _event(event_id, status, offset_hours):
    return DeliveryTrackingEvent(
        id=event_id,
        dispatch_id="dsp-1",
        status=status,
        timestamp=T0 + timedelta(hours=offset_hours),
    )


class TestResolveLineWarehouses:

    def test_single_warehouse(self):
        warehouse_id, by_line = resolve_line_warehouses(
            "so-1", [_line("l1", "WH-1"), _line("l2", "WH-1")], None
        )
        assert warehouse_id == "WH-1"
        assert by_line == {"l1": "WH-1", "l2": "WH-1"}

    def test_default_fills_gaps(self):
        warehouse_id, by_line = resolve_line_warehouses(
            "so-1", [_line("l1", None), _line("l2", "WH-1")], "WH-1"
        )
        assert warehouse_id == "WH-1"
        assert by_line["l1"] == "WH-1"

    def test_multiple_warehouses_ambiguous(self):
        with pytest.raises(AmbiguousWarehouseError) as exc_info:
            resolve_line_warehouses("so-1", [_line("l1", "WH-2"), _line("l2", "WH-1")], None)
        assert exc_info.value.warehouse_ids == ("WH-1", "WH-2")

    def test_default_conflicting_with_line_is_ambiguous(self):
        with pytest.raises(AmbiguousWarehouseError):
            resolve_line_warehouses("so-1", [_line("l1", None), _line("l2", "WH-2")], "WH-1")

    def test_no_warehouse_no_default(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve_line_warehouses("so-1", [_line("l1", None)], None)
        assert exc_info.value.field == "warehouse_id"

    def test_no_lines(self):
        with pytest.raises(ValidationError):
            resolve_line_warehouses("so-1", [], "WH-1")


class TestPickGuardContext:

    def test_partially_picked(self):
        lines = [
            PicklistLine(id="p1", order_line_id="l1", item_id="ITEM-1",
                         ordered_quantity=Decimal("75"), picked_quantity=Decimal("60")),
            PicklistLine(id="p2", order_line_id="l2", item_id="ITEM-2",
                         ordered_quantity=Decimal("10")),
        ]
        assert pick_guard_context(lines) == {
            "line_count": 2,
            "all_lines_picked": False,
            "total_picked": Decimal("60"),
        }

    def test_short_pick_still_counts_as_picked(self):
        lines = [
            PicklistLine(id="p1", order_line_id="l1", item_id="ITEM-1",
                         ordered_quantity=Decimal("75"), picked_quantity=Decimal("0")),
        ]
        assert pick_guard_context(lines)["all_lines_picked"] is True


class TestTrackingHistory:

    def test_append(self):
        first = _event("e1", TrackingStatus.DISPATCHED, 0)
        second = _event("e2", TrackingStatus.IN_TRANSIT, 3)
        history = append_tracking_event(append_tracking_event((), first), second)
        assert history == (first, second)

    def test_same_timestamp_allowed(self):
        first = _event("e1", TrackingStatus.DISPATCHED, 0)
        history = append_tracking_event((first,), _event("e2", TrackingStatus.IN_TRANSIT, 0))
        assert len(history) == 2

    def test_older_event_rejected(self):
        history = (_event("e1", TrackingStatus.IN_TRANSIT, 5),)
        with pytest.raises(ValidationError):
            append_tracking_event(history, _event("e2", TrackingStatus.OUT_FOR_DELIVERY, 1))

    def test_verify_append_only(self):
        first = _event("e1", TrackingStatus.DISPATCHED, 0)
        second = _event("e2", TrackingStatus.IN_TRANSIT, 1)
        verify_append_only((first,), (first, second))
        with pytest.raises(ValidationError):
            verify_append_only((first, second), (first,))
        with pytest.raises(ValidationError):
            verify_append_only((first,), (second, first))
