"""
Tests for SalesService (fulfillment_modules/sales/service.py).

Sales order to picklist to dispatch to delivery and completion, run
against the in-memory repository.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.exceptions import (
    ActiveDispatchExistsError,
    ActivePicklistExistsError,
    AmbiguousWarehouseError,
    InvalidTransitionError,
    OverPickError,
    ValidationError,
)
from fulfillment_modules.sales.models import (
    DispatchDetails,
    DispatchStatus,
    PicklistStatus,
    SalesOrderStatus,
    TrackingStatus,
)
from fulfillment_services.orchestration import PipelineStatus

SO = DocumentType.SALES_ORDER
PL = DocumentType.PICKLIST
DSP = DocumentType.DISPATCH


@pytest.fixture
def in_transit_dispatch(sales, picked_order, clock):
    """Return a factory producing (order, dispatch) with the dispatch in transit."""

    def _ship(lines=None):
        order, picklist = picked_order(lines)
        dispatch = sales.create_dispatch(
            picklist.id,
            DispatchDetails(carrier_name="BlueDart", tracking_number="BD-1"),
            dispatch_now=True,
            location="Pune",
        ).unwrap()
        clock.advance(3600)
        dispatch = sales.mark_in_transit(dispatch.id, location="Nashik hub").unwrap()
        return order, dispatch

    return _ship


def _stored(repository, document_type, document_id):
    return repository.store(document_type).get(document_id)


class TestSalesOrders:

    def test_create_defaults_from_catalog(self, sales):
        order = sales.create_sales_order("CUST-1", [{"item_id": "ITEM-1", "quantity": "75"}]).unwrap()
        assert order.document_no == "SO-2024-001"
        assert order.status == SalesOrderStatus.DRAFT
        assert order.lines[0].unit_price == Decimal("1500")
        assert order.lines[0].warehouse_id == "WH-1"
        assert order.lines[0].warehouse.name == "Main Warehouse"
        assert order.total_amount == Decimal("112500.00")
        assert order.shipping_address == "Plot 7, MIDC, Pune"
        assert order.payment_terms == "Net 15"
        assert order.customer.code == "BLD"

    def test_unknown_customer(self, sales):
        assert sales.create_sales_order("CUST-404", []).status == PipelineStatus.REJECTED

    def test_oversized_amount_rejected(self, sales, repository):
        result = sales.create_sales_order(
            "CUST-1", [{"item_id": "ITEM-1", "quantity": "1e20", "unit_price": "1e10"}]
        )
        assert result.status == PipelineStatus.REJECTED
        assert isinstance(result.error, ValidationError)
        assert len(repository.store(DocumentType.SALES_ORDER)) == 0

    def test_confirm_needs_lines(self, sales):
        order = sales.create_sales_order("CUST-1").unwrap()
        assert isinstance(sales.confirm_sales_order(order.id).error, InvalidTransitionError)

    def test_edit_lines_in_draft_only(self, sales, confirmed_sales_order):
        order = sales.create_sales_order("CUST-1", [{"item_id": "ITEM-1", "quantity": "1"}]).unwrap()
        edited = sales.update_sales_order_lines(
            order.id, [{"item_id": "ITEM-2", "quantity": "2", "tax_percent": "18"}]
        ).unwrap()
        assert edited.total_amount == Decimal("2596.00")

        confirmed = confirmed_sales_order()
        result = sales.update_sales_order_lines(confirmed.id, [{"item_id": "ITEM-1", "quantity": "1"}])
        assert isinstance(result.error, InvalidTransitionError)


class TestPicklists:

    def test_generate(self, sales, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id, assigned_to="picker-7").unwrap()
        assert picklist.document_no == "PL-2024-001"
        assert picklist.status == PicklistStatus.CREATED
        assert picklist.warehouse_id == "WH-1"
        assert picklist.warehouse.code == "MAIN"
        assert [ln.ordered_quantity for ln in picklist.lines] == [Decimal("75")]
        assert picklist.lines[0].picked_quantity is None

    def test_partial_pick(self, sales, repository, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id).unwrap()
        picked = sales.record_pick(picklist.id, picklist.lines[0].id, "60").unwrap()
        assert picked.status == PicklistStatus.IN_PROGRESS
        assert picked.lines[0].picked_quantity == Decimal("60")
        assert picked.lines[0].is_short
        assert picked.started_at is not None
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.CONFIRMED

    def test_pick_by_order_line_id(self, sales, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id).unwrap()
        picked = sales.record_pick(picklist.id, order.lines[0].id, "75", bin_location="A-3").unwrap()
        assert picked.lines[0].bin_location == "A-3"

    def test_over_pick_rejected(self, sales, repository, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id).unwrap()
        result = sales.record_pick(picklist.id, picklist.lines[0].id, "80")
        assert isinstance(result.error, OverPickError)
        stored = _stored(repository, PL, picklist.id)
        assert stored.status == PicklistStatus.CREATED
        assert stored.lines[0].picked_quantity is None

    def test_unknown_line(self, sales, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id).unwrap()
        assert isinstance(sales.record_pick(picklist.id, "nope", "1").error, ValidationError)

    def test_complete_moves_order_to_picked(self, sales, repository, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id).unwrap()
        sales.record_pick(picklist.id, picklist.lines[0].id, "60").unwrap()
        result = sales.complete_picklist(picklist.id)
        assert result.value.status == PicklistStatus.COMPLETED
        assert result.changes.labels == (
            f"update picklist {picklist.id}",
            f"update sales_order {order.id}",
        )
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.PICKED

    def test_complete_confirms_draft_order(self, sales, repository):
        order = sales.create_sales_order("CUST-1", [{"item_id": "ITEM-2", "quantity": "3"}]).unwrap()
        picklist = sales.generate_picklist(order.id).unwrap()
        sales.record_pick(picklist.id, picklist.lines[0].id, "3").unwrap()
        sales.complete_picklist(picklist.id).unwrap()
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.PICKED

    def test_complete_needs_every_line_picked(self, sales, confirmed_sales_order):
        order = confirmed_sales_order(
            [{"item_id": "ITEM-1", "quantity": "5"}, {"item_id": "ITEM-2", "quantity": "5"}]
        )
        picklist = sales.generate_picklist(order.id).unwrap()
        sales.record_pick(picklist.id, picklist.lines[0].id, "5").unwrap()
        result = sales.complete_picklist(picklist.id)
        assert isinstance(result.error, InvalidTransitionError)
        assert "all_lines_picked" in result.message

    def test_ambiguous_warehouse(self, sales, repository, confirmed_sales_order):
        order = confirmed_sales_order(
            [{"item_id": "ITEM-1", "quantity": "5"}, {"item_id": "ITEM-3", "quantity": "20"}]
        )
        result = sales.generate_picklist(order.id)
        assert isinstance(result.error, AmbiguousWarehouseError)
        assert result.error.warehouse_ids == ("WH-1", "WH-2")
        assert len(repository.store(PL)) == 0

    def test_line_warehouse_override(self, sales, confirmed_sales_order):
        order = confirmed_sales_order(
            [
                {"item_id": "ITEM-1", "quantity": "5"},
                {"item_id": "ITEM-3", "quantity": "20", "warehouse_id": "WH-1"},
            ]
        )
        assert sales.generate_picklist(order.id).unwrap().warehouse_id == "WH-1"

    def test_no_warehouse_and_no_default(self, sales, confirmed_sales_order):
        order = confirmed_sales_order([{"item_id": "ITEM-4", "quantity": "100"}])
        result = sales.generate_picklist(order.id)
        assert isinstance(result.error, ValidationError)

    def test_default_warehouse_argument(self, sales, confirmed_sales_order):
        order = confirmed_sales_order([{"item_id": "ITEM-4", "quantity": "100"}])
        picklist = sales.generate_picklist(order.id, default_warehouse_id="WH-2").unwrap()
        assert picklist.warehouse_id == "WH-2"

    def test_one_active_picklist_per_order(self, sales, confirmed_sales_order):
        order = confirmed_sales_order()
        first = sales.generate_picklist(order.id).unwrap()
        result = sales.generate_picklist(order.id)
        assert isinstance(result.error, ActivePicklistExistsError)
        assert result.error.picklist_id == first.id

        sales.cancel_picklist(first.id).unwrap()
        assert sales.generate_picklist(order.id).is_success

    def test_picked_order_gets_no_new_picklist(self, sales, picked_order):
        order, _ = picked_order()
        assert isinstance(sales.generate_picklist(order.id).error, InvalidTransitionError)

    def test_hold_and_resume(self, sales, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id).unwrap()
        started = sales.start_picklist(picklist.id).unwrap()
        assert started.status == PicklistStatus.IN_PROGRESS
        held = sales.hold_picklist(picklist.id, reason="bin blocked").unwrap()
        assert held.status == PicklistStatus.ON_HOLD
        assert held.hold_reason == "bin blocked"
        assert isinstance(sales.record_pick(picklist.id, picklist.lines[0].id, "1").error,
                          InvalidTransitionError)
        resumed = sales.resume_picklist(picklist.id).unwrap()
        assert resumed.status == PicklistStatus.IN_PROGRESS
        assert resumed.hold_reason is None


class TestDispatches:

    def test_create_then_dispatch(self, sales, repository, picked_order):
        order, picklist = picked_order()
        dispatch = sales.create_dispatch(
            picklist.id, DispatchDetails(carrier_name="BlueDart", vehicle_number="MH12AB1234")
        ).unwrap()
        assert dispatch.document_no == "DSP-2024-001"
        assert dispatch.status == DispatchStatus.CREATED
        assert dispatch.tracking == ()
        assert dispatch.delivery_address == "Plot 7, MIDC, Pune"
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.PICKED

        dispatched = sales.dispatch(dispatch.id, location="Pune").unwrap()
        assert dispatched.status == DispatchStatus.DISPATCHED
        assert dispatched.dispatched_at is not None
        assert [e.status for e in dispatched.tracking] == [TrackingStatus.DISPATCHED]
        assert dispatched.tracking[0].location == "Pune"
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.DISPATCHED

    def test_dispatch_now_is_one_change_set(self, sales, picked_order):
        order, picklist = picked_order()
        result = sales.create_dispatch(picklist.id, dispatch_now=True)
        assert result.value.status == DispatchStatus.DISPATCHED
        assert result.changes.labels == (
            f"create dispatch {result.value.id}",
            f"update sales_order {order.id}",
        )

    def test_picklist_must_be_completed(self, sales, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id).unwrap()
        assert isinstance(sales.create_dispatch(picklist.id).error, InvalidTransitionError)

    def test_one_active_dispatch_per_picklist(self, sales, repository, picked_order):
        order, picklist = picked_order()
        first = sales.create_dispatch(picklist.id).unwrap()
        result = sales.create_dispatch(picklist.id)
        assert isinstance(result.error, ActiveDispatchExistsError)

        sales.cancel_dispatch(first.id).unwrap()
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.PICKED
        assert sales.create_dispatch(picklist.id).is_success

    def test_cancelled_shipment_recalls_order(self, sales, repository, clock, in_transit_dispatch):
        order, first = in_transit_dispatch()
        result = sales.cancel_dispatch(first.id)
        assert result.value.status == DispatchStatus.CANCELLED
        assert result.changes.labels == (
            f"update dispatch {first.id}",
            f"update sales_order {order.id}",
        )
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.PICKED

        replacement = sales.create_dispatch(first.picklist_id).unwrap()
        sales.dispatch(replacement.id).unwrap()
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.DISPATCHED
        clock.advance(3600)
        sales.mark_in_transit(replacement.id).unwrap()
        clock.advance(3600)
        assert sales.deliver_dispatch(replacement.id).unwrap().status == DispatchStatus.DELIVERED
        assert _stored(repository, DSP, first.id).status == DispatchStatus.CANCELLED

    def test_tracking_sequence(self, sales, clock, in_transit_dispatch):
        _, dispatch = in_transit_dispatch()
        assert dispatch.status == DispatchStatus.IN_TRANSIT
        clock.advance(3600)
        sales.record_tracking_event(dispatch.id, "Out for Delivery").unwrap()
        clock.advance(3600)
        sales.record_tracking_event(dispatch.id, TrackingStatus.FAILED, notes="door locked").unwrap()
        clock.advance_days(1)
        sales.record_tracking_event(dispatch.id, "in_transit").unwrap()
        clock.advance(3600)
        delivered = sales.deliver_dispatch(dispatch.id, delivered_to="site office").unwrap()
        assert delivered.status == DispatchStatus.DELIVERED
        assert [e.status.value for e in delivered.tracking] == [
            "dispatched", "in_transit", "out_for_delivery", "failed", "in_transit", "delivered",
        ]
        assert delivered.tracking[-1].delivered_to == "site office"
        timestamps = [e.timestamp for e in delivered.tracking]
        assert timestamps == sorted(timestamps)

    def test_history_is_append_only(self, sales, in_transit_dispatch):
        _, dispatch = in_transit_dispatch()
        before = dispatch.tracking
        after = sales.record_tracking_event(dispatch.id, "out_for_delivery").unwrap().tracking
        assert after[: len(before)] == before

    @pytest.mark.parametrize("status", ["delivered", "dispatched"])
    def test_terminal_or_initial_status_not_an_intermediate_event(
        self, sales, in_transit_dispatch, status
    ):
        _, dispatch = in_transit_dispatch()
        assert isinstance(sales.record_tracking_event(dispatch.id, status).error, ValidationError)

    def test_unknown_tracking_status(self, sales, in_transit_dispatch):
        _, dispatch = in_transit_dispatch()
        assert isinstance(sales.record_tracking_event(dispatch.id, "lost").error, ValidationError)

    def test_tracking_needs_in_transit_dispatch(self, sales, picked_order):
        _, picklist = picked_order()
        dispatch = sales.create_dispatch(picklist.id, dispatch_now=True).unwrap()
        result = sales.record_tracking_event(dispatch.id, "out_for_delivery")
        assert isinstance(result.error, InvalidTransitionError)

    def test_failed_delivery_must_be_reattempted(self, sales, in_transit_dispatch):
        _, dispatch = in_transit_dispatch()
        sales.record_tracking_event(dispatch.id, "failed").unwrap()
        assert isinstance(sales.deliver_dispatch(dispatch.id).error, InvalidTransitionError)

    def test_event_older_than_history_rejected(self, sales, clock, in_transit_dispatch):
        _, dispatch = in_transit_dispatch()
        clock.set_time(clock.now() - timedelta(days=1))
        result = sales.record_tracking_event(dispatch.id, "out_for_delivery")
        assert isinstance(result.error, ValidationError)

    def test_delivery_leaves_order_dispatched(self, sales, repository, in_transit_dispatch):
        order, dispatch = in_transit_dispatch()
        sales.deliver_dispatch(dispatch.id).unwrap()
        assert _stored(repository, SO, order.id).status == SalesOrderStatus.DISPATCHED


class TestCompletion:

    def test_requires_delivered_dispatch(self, lenient_sales, in_transit_dispatch):
        order, _ = in_transit_dispatch()
        result = lenient_sales.complete_sales_order(order.id)
        assert isinstance(result.error, InvalidTransitionError)

    def test_without_settlement_requirement(self, sales, lenient_sales, in_transit_dispatch):
        order, dispatch = in_transit_dispatch()
        sales.deliver_dispatch(dispatch.id).unwrap()
        completed = lenient_sales.complete_sales_order(order.id).unwrap()
        assert completed.status == SalesOrderStatus.DELIVERED

    def test_requires_paid_invoice(self, sales, invoicing, repository, in_transit_dispatch):
        order, dispatch = in_transit_dispatch()
        sales.deliver_dispatch(dispatch.id).unwrap()
        result = sales.complete_sales_order(order.id)
        assert isinstance(result.error, InvalidTransitionError)
        assert "ready_for_completion" in result.message

        invoice = sales.create_sales_invoice(order.id).unwrap()
        invoicing.issue_invoice(invoice.id).unwrap()
        invoicing.record_payment(invoice.id, "50000").unwrap()
        assert not sales.complete_sales_order(order.id).is_success

        invoicing.record_payment(invoice.id, invoice.total_amount - Decimal("50000")).unwrap()
        assert sales.complete_sales_order(order.id).unwrap().status == SalesOrderStatus.DELIVERED

    def test_delivered_order_is_final(self, sales, lenient_sales, in_transit_dispatch):
        order, dispatch = in_transit_dispatch()
        sales.deliver_dispatch(dispatch.id).unwrap()
        lenient_sales.complete_sales_order(order.id).unwrap()
        assert isinstance(sales.cancel_sales_order(order.id).error, InvalidTransitionError)


class TestCancellation:

    def test_cascades_to_open_picklist(self, sales, repository, confirmed_sales_order):
        order = confirmed_sales_order()
        picklist = sales.generate_picklist(order.id).unwrap()
        result = sales.cancel_sales_order(order.id)
        assert result.value.status == SalesOrderStatus.CANCELLED
        assert _stored(repository, PL, picklist.id).status == PicklistStatus.CANCELLED
        assert len(result.changes) == 2

    def test_cascades_to_active_dispatch(self, sales, repository, in_transit_dispatch):
        order, dispatch = in_transit_dispatch()
        sales.cancel_sales_order(order.id).unwrap()
        assert _stored(repository, DSP, dispatch.id).status == DispatchStatus.CANCELLED
        picklist = _stored(repository, PL, dispatch.picklist_id)
        assert picklist.status == PicklistStatus.COMPLETED


class TestSalesInvoices:

    def test_bills_ordered_quantity(self, sales, confirmed_sales_order):
        order = confirmed_sales_order()
        invoice = sales.create_sales_invoice(order.id, invoice_date=date(2024, 3, 20)).unwrap()
        assert invoice.document_no == "INV-2024-001"
        assert invoice.party_id == "CUST-1"
        assert invoice.party.name == "Builders Ltd"
        assert invoice.total_amount == Decimal("112500.00")
        assert invoice.due_date == date(2024, 4, 19)
        assert invoice.payment_terms == "Net 15"

    def test_draft_order_not_invoiceable(self, sales):
        order = sales.create_sales_order("CUST-1", [{"item_id": "ITEM-1", "quantity": "1"}]).unwrap()
        assert isinstance(sales.create_sales_invoice(order.id).error, InvalidTransitionError)

    def test_cancelled_invoice_frees_quantity(self, sales, invoicing, confirmed_sales_order):
        order = confirmed_sales_order()
        first = sales.create_sales_invoice(order.id).unwrap()
        assert isinstance(sales.create_sales_invoice(order.id).error, ValidationError)
        invoicing.cancel_invoice(first.id).unwrap()
        assert sales.create_sales_invoice(order.id).is_success
