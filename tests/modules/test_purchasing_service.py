"""
Tests for PurchasingService (fulfillment_modules/purchasing/service.py).

Requisition to purchase order to goods receipt to purchase invoice, run
against the in-memory repository.
"""

from datetime import date
from decimal import Decimal

import pytest

from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.exceptions import (
    InvalidTransitionError,
    OverReceiptError,
    PreconditionFailedError,
    QuantityMismatchError,
    ReferenceNotFoundError,
    ValidationError,
)
from fulfillment_modules.invoicing.models import InvoiceKind, InvoiceStatus
from fulfillment_modules.purchasing.models import (
    POStatus,
    QualityStatus,
    ReceiptStatus,
    RequisitionStatus,
)
from fulfillment_services.orchestration import PipelineStatus

REQUISITION_LINES = [
    {
        "id": "req-line-rod",
        "item_id": "ITEM-1",
        "quantity": "200",
        "unit_price": "1200",
        "discount_percent": "5",
        "tax_percent": "18",
    },
    {
        "id": "req-line-wire",
        "item_id": "ITEM-2",
        "quantity": "100",
        "unit_price": "890",
        "tax_percent": "18",
    },
]


@pytest.fixture
def approved_requisition(purchasing):
    requisition = purchasing.create_requisition("stores", REQUISITION_LINES).unwrap()
    purchasing.submit_requisition(requisition.id).unwrap()
    return purchasing.approve_requisition(requisition.id, approved_by="plant-head").unwrap()


def _receive(purchasing, order, received, accepted=None, rejected=None, **kwargs):
    spec = {"order_line_id": order.lines[0].id, "received_quantity": received}
    if accepted is not None:
        spec["accepted_quantity"] = accepted
    if rejected is not None:
        spec["rejected_quantity"] = rejected
    return purchasing.record_goods_receipt(order.id, [spec], **kwargs)


class TestRequisitions:

    def test_create_prices_and_numbers(self, purchasing):
        requisition = purchasing.create_requisition(
            "stores", REQUISITION_LINES, department="maintenance"
        ).unwrap()
        assert requisition.document_no == "PR-2024-001"
        assert requisition.status == RequisitionStatus.DRAFT
        assert requisition.requested_date == date(2024, 3, 15)
        assert requisition.total_amount == Decimal("374060.00")
        assert requisition.lines[0].item.name == "Steel Rod 12mm"

    def test_price_defaults_to_item_cost(self, purchasing):
        requisition = purchasing.create_requisition(
            "stores", [{"item_id": "ITEM-3", "quantity": "10"}]
        ).unwrap()
        assert requisition.lines[0].unit_price == Decimal("45")
        assert requisition.total_amount == Decimal("450.00")

    def test_sequential_numbers(self, purchasing):
        purchasing.create_requisition("stores", REQUISITION_LINES).unwrap()
        second = purchasing.create_requisition("stores", REQUISITION_LINES).unwrap()
        assert second.document_no == "PR-2024-002"

    def test_lifecycle(self, purchasing, repository):
        requisition = purchasing.create_requisition("stores", REQUISITION_LINES).unwrap()
        assert purchasing.submit_requisition(requisition.id).unwrap().status == RequisitionStatus.PENDING
        approved = purchasing.approve_requisition(requisition.id, approved_by="plant-head").unwrap()
        assert approved.status == RequisitionStatus.APPROVED
        assert approved.approved_by == "plant-head"
        assert approved.approved_date == date(2024, 3, 15)
        assert len(repository.store(DocumentType.PURCHASE_ORDER)) == 0

    def test_reject(self, purchasing):
        requisition = purchasing.create_requisition("stores", REQUISITION_LINES).unwrap()
        purchasing.submit_requisition(requisition.id).unwrap()
        rejected = purchasing.reject_requisition(requisition.id, reason="budget frozen").unwrap()
        assert rejected.status == RequisitionStatus.REJECTED
        assert rejected.rejection_reason == "budget frozen"

    def test_cancel_only_once_approved(self, purchasing, approved_requisition):
        draft = purchasing.create_requisition("stores", REQUISITION_LINES).unwrap()
        result = purchasing.cancel_requisition(draft.id)
        assert isinstance(result.error, InvalidTransitionError)
        cancelled = purchasing.cancel_requisition(approved_requisition.id).unwrap()
        assert cancelled.status == RequisitionStatus.CANCELLED

    def test_submit_without_lines_rejected(self, purchasing):
        requisition = purchasing.create_requisition("stores").unwrap()
        result = purchasing.submit_requisition(requisition.id)
        assert result.status == PipelineStatus.REJECTED
        assert isinstance(result.error, InvalidTransitionError)

    def test_edit_lines_only_in_draft(self, purchasing):
        requisition = purchasing.create_requisition("stores", REQUISITION_LINES).unwrap()
        edited = purchasing.update_requisition_lines(
            requisition.id, [{"item_id": "ITEM-1", "quantity": "10", "unit_price": "1200"}]
        ).unwrap()
        assert edited.total_amount == Decimal("12000.00")

        purchasing.submit_requisition(requisition.id).unwrap()
        result = purchasing.update_requisition_lines(requisition.id, REQUISITION_LINES)
        assert isinstance(result.error, InvalidTransitionError)

    def test_duplicate_line_ids_rejected(self, purchasing):
        lines = [dict(REQUISITION_LINES[0]), dict(REQUISITION_LINES[1], id="req-line-rod")]
        result = purchasing.create_requisition("stores", lines)
        assert isinstance(result.error, ValidationError)

    @pytest.mark.parametrize(
        "line, error",
        [
            ({"item_id": "ITEM-OLD", "quantity": "1"}, ValidationError),
            ({"item_id": "ITEM-404", "quantity": "1"}, ReferenceNotFoundError),
            ({"item_id": "ITEM-1", "quantity": "0"}, ValidationError),
            ({"item_id": "ITEM-1"}, ValidationError),
            ({"item_id": "ITEM-1", "quantity": "1", "discount_percent": "120"}, ValidationError),
        ],
    )
    def test_bad_lines_rejected(self, purchasing, repository, line, error):
        result = purchasing.create_requisition("stores", [line])
        assert result.status == PipelineStatus.REJECTED
        assert isinstance(result.error, error)
        assert len(repository.store(DocumentType.REQUISITION)) == 0

    def test_plan_without_commit(self, purchasing, repository):
        result = purchasing.create_requisition("stores", REQUISITION_LINES, commit=False)
        assert result.status == PipelineStatus.PLANNED
        assert result.is_success
        assert result.value.total_amount == Decimal("374060.00")
        assert result.changes.labels == (f"create requisition {result.value.id}",)
        assert len(repository.store(DocumentType.REQUISITION)) == 0


class TestConversion:

    def test_two_line_order_totals(self, purchasing, approved_requisition):
        order = purchasing.convert_requisition_to_purchase_order(
            approved_requisition.id, "SUP-1"
        ).unwrap()
        assert order.status == POStatus.DRAFT
        assert order.document_no == "PO-2024-001"
        assert order.requisition_id == approved_requisition.id
        assert order.subtotal == Decimal("317000.00")
        assert order.discount_amount == Decimal("12000.00")
        assert order.tax_amount == Decimal("57060.00")
        assert order.total_amount == Decimal("374060.00")
        assert [ln.line_total for ln in order.lines] == [Decimal("269040.00"), Decimal("105020.00")]
        assert [ln.requisition_line_id for ln in order.lines] == ["req-line-rod", "req-line-wire"]
        assert order.supplier.name == "Acme Metals"
        assert order.payment_terms == "Net 30"

    def test_requisition_stays_approved(self, purchasing, repository, approved_requisition):
        purchasing.convert_requisition_to_purchase_order(approved_requisition.id, "SUP-1").unwrap()
        stored = repository.store(DocumentType.REQUISITION).get(approved_requisition.id)
        assert stored.status == RequisitionStatus.APPROVED

    def test_overrides(self, purchasing, approved_requisition):
        order = purchasing.convert_requisition_to_purchase_order(
            approved_requisition.id, "SUP-1",
            {"req-line-wire": {"quantity": "50", "unit_price": "900"}},
        ).unwrap()
        wire = order.lines[1]
        assert wire.quantity == Decimal("50")
        assert wire.line_total == Decimal("53100.00")

    def test_unknown_override_line(self, purchasing, approved_requisition):
        result = purchasing.convert_requisition_to_purchase_order(
            approved_requisition.id, "SUP-1", {"nope": {"quantity": "1"}}
        )
        assert isinstance(result.error, ValidationError)

    def test_second_conversion_rejected(self, purchasing, approved_requisition):
        first = purchasing.convert_requisition_to_purchase_order(
            approved_requisition.id, "SUP-1"
        ).unwrap()
        result = purchasing.convert_requisition_to_purchase_order(approved_requisition.id, "SUP-1")
        assert isinstance(result.error, PreconditionFailedError)
        assert first.document_no in result.message

    def test_conversion_allowed_after_cancel(self, purchasing, approved_requisition):
        first = purchasing.convert_requisition_to_purchase_order(
            approved_requisition.id, "SUP-1"
        ).unwrap()
        purchasing.cancel_purchase_order(first.id).unwrap()
        assert purchasing.convert_requisition_to_purchase_order(
            approved_requisition.id, "SUP-1"
        ).is_success

    def test_requisition_must_be_approved(self, purchasing):
        requisition = purchasing.create_requisition("stores", REQUISITION_LINES).unwrap()
        result = purchasing.convert_requisition_to_purchase_order(requisition.id, "SUP-1")
        assert isinstance(result.error, InvalidTransitionError)

    def test_inactive_supplier(self, purchasing, approved_requisition):
        result = purchasing.convert_requisition_to_purchase_order(approved_requisition.id, "SUP-9")
        assert isinstance(result.error, ValidationError)
        assert result.error.field == "supplier_id"


class TestPurchaseOrderLifecycle:

    def test_to_ordered(self, purchasing):
        order = purchasing.create_purchase_order(
            "SUP-1", [{"item_id": "ITEM-1", "quantity": "200", "unit_price": "1200"}]
        ).unwrap()
        assert order.total_amount == Decimal("240000.00")
        purchasing.submit_purchase_order(order.id).unwrap()
        approved = purchasing.approve_purchase_order(order.id, approved_by="cfo").unwrap()
        assert approved.approved_by == "cfo"
        assert purchasing.confirm_purchase_order(order.id).unwrap().status == POStatus.ORDERED

    def test_confirm_requires_approval(self, purchasing):
        order = purchasing.create_purchase_order(
            "SUP-1", [{"item_id": "ITEM-1", "quantity": "1"}]
        ).unwrap()
        result = purchasing.confirm_purchase_order(order.id)
        assert isinstance(result.error, InvalidTransitionError)

    def test_unknown_order(self, purchasing):
        result = purchasing.submit_purchase_order("po-missing")
        assert result.status == PipelineStatus.REJECTED

    def test_cancel_ordered_before_receipt(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        assert purchasing.cancel_purchase_order(order.id).unwrap().status == POStatus.CANCELLED

    def test_cancel_after_receipt_rejected(self, purchasing, repository, ordered_purchase_order):
        order = ordered_purchase_order()
        _receive(purchasing, order, "150").unwrap()
        result = purchasing.cancel_purchase_order(order.id)
        assert isinstance(result.error, InvalidTransitionError)
        stored = repository.store(DocumentType.PURCHASE_ORDER).get(order.id)
        assert stored.status == POStatus.PARTIALLY_RECEIVED

    def test_pending_receipt_blocks_cancel(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        _receive(purchasing, order, "10", complete=False).unwrap()
        result = purchasing.cancel_purchase_order(order.id)
        assert isinstance(result.error, InvalidTransitionError)
        assert "nothing_received" in result.message


class TestGoodsReceipts:

    def test_partial_then_full_with_rejects(self, purchasing, repository, ordered_purchase_order):
        order = ordered_purchase_order()
        first = _receive(purchasing, order, "150")
        assert first.status == PipelineStatus.APPLIED
        receipt = first.value
        assert receipt.status == ReceiptStatus.COMPLETED
        assert receipt.document_no == "GR-2024-001"
        assert receipt.lines[0].quality_status == QualityStatus.PASSED

        po = repository.store(DocumentType.PURCHASE_ORDER).get(order.id)
        assert po.status == POStatus.PARTIALLY_RECEIVED
        assert po.lines[0].received_quantity == Decimal("150")
        assert po.lines[0].outstanding_quantity == Decimal("50")

        second = _receive(purchasing, order, "50", accepted="45", rejected="5").unwrap()
        assert second.lines[0].quality_status == QualityStatus.PARTIAL
        po = repository.store(DocumentType.PURCHASE_ORDER).get(order.id)
        assert po.status == POStatus.RECEIVED
        assert po.lines[0].received_quantity == Decimal("200")
        assert po.lines[0].accepted_quantity == Decimal("195")
        assert po.lines[0].rejected_quantity == Decimal("5")

    def test_receipt_and_order_change_together(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        result = _receive(purchasing, order, "150")
        assert result.changes.labels == (
            f"create goods_receipt {result.value.id}",
            f"update purchase_order {order.id}",
        )
        assert result.changes.idempotency_keys[1] == (
            f"purchase_order:{order.id}:partially_received"
        )

    def test_full_receipt_in_one_go(self, purchasing, repository, ordered_purchase_order):
        order = ordered_purchase_order()
        _receive(purchasing, order, "200").unwrap()
        po = repository.store(DocumentType.PURCHASE_ORDER).get(order.id)
        assert po.status == POStatus.RECEIVED

    def test_over_receipt_rejected_and_nothing_changes(
        self, purchasing, repository, ordered_purchase_order
    ):
        order = ordered_purchase_order()
        _receive(purchasing, order, "150").unwrap()
        result = _receive(purchasing, order, "60")
        assert result.status == PipelineStatus.REJECTED
        assert isinstance(result.error, OverReceiptError)
        assert len(repository.store(DocumentType.GOODS_RECEIPT)) == 1
        po = repository.store(DocumentType.PURCHASE_ORDER).get(order.id)
        assert po.lines[0].received_quantity == Decimal("150")

    def test_split_must_add_up(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        result = _receive(purchasing, order, "50", accepted="40", rejected="5")
        assert isinstance(result.error, QuantityMismatchError)

    def test_order_must_be_ordered(self, purchasing):
        order = purchasing.create_purchase_order(
            "SUP-1", [{"item_id": "ITEM-1", "quantity": "1"}]
        ).unwrap()
        result = _receive(purchasing, order, "1")
        assert isinstance(result.error, InvalidTransitionError)

    def test_received_order_accepts_no_more(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        _receive(purchasing, order, "200").unwrap()
        assert isinstance(_receive(purchasing, order, "1").error, InvalidTransitionError)

    @pytest.mark.parametrize("lines", [[], [{"order_line_id": "x", "received_quantity": "0"}]])
    def test_empty_receipt_rejected(self, purchasing, ordered_purchase_order, lines):
        order = ordered_purchase_order()
        result = purchasing.record_goods_receipt(order.id, lines)
        assert isinstance(result.error, ValidationError)

    def test_unknown_order_line(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        result = purchasing.record_goods_receipt(
            order.id, [{"order_line_id": "nope", "received_quantity": "1"}]
        )
        assert isinstance(result.error, ValidationError)

    def test_pending_receipt_reserves_quantity(self, purchasing, repository, ordered_purchase_order):
        order = ordered_purchase_order()
        pending = _receive(purchasing, order, "150", complete=False).unwrap()
        assert pending.status == ReceiptStatus.PENDING
        po = repository.store(DocumentType.PURCHASE_ORDER).get(order.id)
        assert po.status == POStatus.ORDERED
        assert po.lines[0].received_quantity == Decimal("0")
        assert isinstance(_receive(purchasing, order, "60").error, OverReceiptError)

    def test_cancelled_receipt_releases_quantity(self, purchasing, repository, ordered_purchase_order):
        order = ordered_purchase_order()
        pending = _receive(purchasing, order, "150", complete=False).unwrap()
        purchasing.cancel_goods_receipt(pending.id).unwrap()
        _receive(purchasing, order, "200").unwrap()
        assert repository.store(DocumentType.PURCHASE_ORDER).get(order.id).status == POStatus.RECEIVED

    def test_inspect_then_complete(self, purchasing, repository, ordered_purchase_order):
        order = ordered_purchase_order()
        pending = _receive(purchasing, order, "150", complete=False).unwrap()
        line_id = pending.lines[0].id
        inspected = purchasing.inspect_goods_receipt(
            pending.id,
            {line_id: {"accepted_quantity": "140", "rejected_quantity": "10"}},
            inspected_by="qc-1",
        ).unwrap()
        assert inspected.status == ReceiptStatus.IN_PROGRESS
        assert inspected.lines[0].quality_status == QualityStatus.PARTIAL
        assert inspected.inspected_by == "qc-1"

        completed = purchasing.complete_goods_receipt(pending.id).unwrap()
        assert completed.status == ReceiptStatus.COMPLETED
        po = repository.store(DocumentType.PURCHASE_ORDER).get(order.id)
        assert po.status == POStatus.PARTIALLY_RECEIVED
        assert po.lines[0].accepted_quantity == Decimal("140")
        assert po.lines[0].rejected_quantity == Decimal("10")

    def test_inspection_cannot_change_received(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        pending = _receive(purchasing, order, "150", complete=False).unwrap()
        result = purchasing.inspect_goods_receipt(
            pending.id, {pending.lines[0].id: {"accepted_quantity": "100"}}
        )
        assert isinstance(result.error, QuantityMismatchError)

    def test_inspection_rejects_negative_split(self, purchasing, repository, ordered_purchase_order):
        order = ordered_purchase_order()
        pending = _receive(purchasing, order, "150", complete=False).unwrap()
        result = purchasing.inspect_goods_receipt(
            pending.id,
            {pending.lines[0].id: {"accepted_quantity": "-5", "rejected_quantity": "155"}},
        )
        assert isinstance(result.error, ValidationError)
        assert result.error.field == "accepted_quantity"
        stored = repository.store(DocumentType.GOODS_RECEIPT).get(pending.id)
        assert stored.status == ReceiptStatus.PENDING
        assert stored.lines[0].accepted_quantity == Decimal("150")

    def test_receipt_line_quantities_non_negative(self):
        from fulfillment_modules.purchasing.models import GoodsReceiptLine

        with pytest.raises(ValidationError, match="rejected_quantity must not be negative"):
            GoodsReceiptLine(
                id="grl-1", order_line_id="pol-1", item_id="ITEM-1",
                ordered_quantity=Decimal("200"), received_quantity=Decimal("150"),
                accepted_quantity=Decimal("155"), rejected_quantity=Decimal("-5"),
            )

    def test_inspect_unknown_line(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        pending = _receive(purchasing, order, "150", complete=False).unwrap()
        result = purchasing.inspect_goods_receipt(pending.id, {"nope": {"accepted_quantity": "1"}})
        assert isinstance(result.error, ValidationError)

    def test_unresolved_quality_blocks_completion(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        pending = purchasing.record_goods_receipt(
            order.id,
            [{"order_line_id": order.lines[0].id, "received_quantity": "10",
              "quality_status": "Pending"}],
            complete=False,
        ).unwrap()
        purchasing.start_goods_receipt(pending.id).unwrap()
        result = purchasing.complete_goods_receipt(pending.id)
        assert isinstance(result.error, InvalidTransitionError)
        assert result.error.reason == "Guard not satisfied: quality_resolved"

    def test_completed_receipt_cannot_be_cancelled(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        receipt = _receive(purchasing, order, "10").unwrap()
        assert isinstance(purchasing.cancel_goods_receipt(receipt.id).error, InvalidTransitionError)

    def test_failed_commit_rolls_back(self, purchasing, repository, ordered_purchase_order, monkeypatch):
        order = ordered_purchase_order()
        orders = repository.store(DocumentType.PURCHASE_ORDER)

        def broken_update(document):
            raise RuntimeError("disk full")

        monkeypatch.setattr(orders, "update", broken_update)
        result = _receive(purchasing, order, "150")
        assert result.status == PipelineStatus.FAILED
        assert result.error.rolled_back
        assert result.error.steps_failed == (f"update purchase_order {order.id}",)
        assert result.error.steps_succeeded == ()
        assert len(result.error.steps_rolled_back) == 1
        assert len(repository.store(DocumentType.GOODS_RECEIPT)) == 0


class TestPurchaseInvoices:

    def test_bills_accepted_quantity(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        _receive(purchasing, order, "150", accepted="140", rejected="10").unwrap()
        invoice = purchasing.create_purchase_invoice(order.id).unwrap()
        assert invoice.kind == InvoiceKind.PURCHASE
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.document_no == "PINV-2024-001"
        assert invoice.party_id == "SUP-1"
        assert invoice.lines[0].quantity == Decimal("140")
        assert invoice.total_amount == Decimal("168000.00")
        assert invoice.due_date == date(2024, 4, 14)

    def test_nothing_left_to_bill(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        _receive(purchasing, order, "150").unwrap()
        purchasing.create_purchase_invoice(order.id).unwrap()
        assert isinstance(purchasing.create_purchase_invoice(order.id).error, ValidationError)

    def test_partial_quantities(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        _receive(purchasing, order, "150").unwrap()
        line_id = order.lines[0].id
        invoice = purchasing.create_purchase_invoice(order.id, {line_id: "100"}).unwrap()
        assert invoice.lines[0].quantity == Decimal("100")
        result = purchasing.create_purchase_invoice(order.id, {line_id: "60"})
        assert isinstance(result.error, ValidationError)

    def test_order_must_have_receipts(self, purchasing, ordered_purchase_order):
        order = ordered_purchase_order()
        assert isinstance(purchasing.create_purchase_invoice(order.id).error, InvalidTransitionError)
