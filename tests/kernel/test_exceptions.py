"""Tests for the typed exception hierarchy (fulfillment_kernel/exceptions.py)."""

import pytest

from fulfillment_kernel.exceptions import (
    ActiveDispatchExistsError,
    ActivePicklistExistsError,
    AmbiguousWarehouseError,
    FulfillmentError,
    InvalidTransitionError,
    OrchestrationFailure,
    OverPickError,
    OverReceiptError,
    PreconditionFailedError,
    QuantityMismatchError,
    ReconciliationError,
    UnexpectedResponseShapeError,
)


class TestCodes:

    @pytest.mark.parametrize(
        "exc, code",
        [
            (InvalidTransitionError("purchase_order", "received", "cancel"), "INVALID_TRANSITION"),
            (OverReceiptError("200", "150", "60"), "OVER_RECEIPT"),
            (OverPickError("75", "80"), "OVER_PICK"),
            (QuantityMismatchError("50", "40", "5"), "QUANTITY_MISMATCH"),
            (AmbiguousWarehouseError("so-1", ["WH-2", "WH-1"]), "AMBIGUOUS_WAREHOUSE"),
            (UnexpectedResponseShapeError("invoice", "missing id"), "UNEXPECTED_RESPONSE_SHAPE"),
        ],
    )
    def test_stable_codes(self, exc, code):
        assert exc.code == code
        assert isinstance(exc, FulfillmentError)


class TestHierarchy:

    def test_reconciliation_family(self):
        for cls in (OverReceiptError, OverPickError, QuantityMismatchError):
            assert issubclass(cls, ReconciliationError)

    def test_precondition_family(self):
        for cls in (AmbiguousWarehouseError, ActivePicklistExistsError, ActiveDispatchExistsError):
            assert issubclass(cls, PreconditionFailedError)


class TestContext:

    def test_invalid_transition(self):
        exc = InvalidTransitionError(
            "purchase_order", "received", "cancel",
            reason="goods already received", document_id="po-1",
        )
        assert exc.document_id == "po-1"
        assert str(exc) == "Cannot cancel purchase_order in status 'received': goods already received"

    def test_over_receipt_mentions_line(self):
        exc = OverReceiptError("200", "150", "60", line_id="po-1-1")
        assert exc.previously_received == "150"
        assert "line po-1-1" in str(exc)

    def test_ambiguous_warehouse_sorted(self):
        exc = AmbiguousWarehouseError("so-1", ["WH-2", "WH-1"])
        assert exc.warehouse_ids == ("WH-1", "WH-2")
        assert "WH-1, WH-2" in str(exc)

    def test_shape_error_location(self):
        exc = UnexpectedResponseShapeError("invoice", "not a number", field="total_amount")
        assert str(exc) == "Unexpected invoice.total_amount response: not a number"

    def test_orchestration_failure(self):
        exc = OrchestrationFailure(
            "complete_goods_receipt",
            steps_succeeded=[],
            steps_failed=["update purchase_order po-1"],
            reason="store unavailable",
            rolled_back=True,
            steps_rolled_back=["update goods_receipt gr-1"],
        )
        assert exc.steps_pending == ()
        assert exc.steps_rolled_back == ("update goods_receipt gr-1",)
        assert exc.rolled_back
        assert str(exc) == (
            "complete_goods_receipt failed at update purchase_order po-1: store unavailable"
        )
