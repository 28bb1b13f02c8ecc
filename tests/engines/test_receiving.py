"""Tests for cumulative receipt progress (fulfillment_engines/receiving.py)."""

from decimal import Decimal

import pytest

from fulfillment_engines.receiving import (
    LineReceiptProgress,
    receipt_guard_context,
    summarize_receipts,
    validate_new_receipt,
)
from fulfillment_kernel.exceptions import (
    OverReceiptError,
    QuantityMismatchError,
    ValidationError,
)
from fulfillment_modules.purchasing.models import GoodsReceiptLine, PurchaseOrderLine

ORDER_LINES = (
    PurchaseOrderLine(id="pol-1", item_id="ITEM-1", quantity=Decimal("200")),
    PurchaseOrderLine(id="pol-2", item_id="ITEM-2", quantity=Decimal("100")),
)


def _receipt_line(order_line_id, received, accepted=None, rejected="0", line_id="grl"):
    accepted = received if accepted is None else accepted
    return GoodsReceiptLine(
        id=line_id,
        order_line_id=order_line_id,
        item_id="ITEM-1",
        ordered_quantity=Decimal("200"),
        received_quantity=Decimal(received),
        accepted_quantity=Decimal(accepted),
        rejected_quantity=Decimal(rejected),
    )


class TestSummarizeReceipts:

    def test_sums_across_receipts(self):
        progress = summarize_receipts(
            ORDER_LINES,
            [_receipt_line("pol-1", "150"), _receipt_line("pol-1", "50", "45", "5")],
        )
        assert progress[0] == LineReceiptProgress(
            line_id="pol-1",
            ordered=Decimal("200"),
            received=Decimal("200"),
            accepted=Decimal("195"),
            rejected=Decimal("5"),
        )
        assert progress[0].is_fully_received
        assert progress[1].received == Decimal("0")
        assert progress[1].outstanding == Decimal("100")

    def test_unknown_order_line(self):
        with pytest.raises(ValidationError):
            summarize_receipts(ORDER_LINES, [_receipt_line("pol-9", "1")])


class TestValidateNewReceipt:

    def test_within_outstanding(self):
        validate_new_receipt(
            ORDER_LINES, [_receipt_line("pol-1", "150")], [_receipt_line("pol-1", "50")]
        )

    def test_cumulative_over_receipt(self):
        with pytest.raises(OverReceiptError) as exc_info:
            validate_new_receipt(
                ORDER_LINES, [_receipt_line("pol-1", "150")], [_receipt_line("pol-1", "60")]
            )
        assert exc_info.value.previously_received == "150"

    def test_lines_of_the_same_receipt_add_up(self):
        with pytest.raises(OverReceiptError):
            validate_new_receipt(
                ORDER_LINES,
                [],
                [_receipt_line("pol-2", "60"), _receipt_line("pol-2", "60")],
            )

    def test_unknown_order_line(self):
        with pytest.raises(ValidationError):
            validate_new_receipt(ORDER_LINES, [], [_receipt_line("pol-9", "1")])

    def test_split_mismatch(self):
        class Loose:
            order_line_id = "pol-1"
            received_quantity = Decimal("10")
            accepted_quantity = Decimal("8")
            rejected_quantity = Decimal("1")

        with pytest.raises(QuantityMismatchError):
            validate_new_receipt(ORDER_LINES, [], [Loose()])


class TestReceiptGuardContext:

    def test_partial(self):
        context = receipt_guard_context(
            summarize_receipts(ORDER_LINES, [_receipt_line("pol-1", "150")])
        )
        assert context == {
            "line_count": 2,
            "total_received": Decimal("150"),
            "outstanding_quantity": Decimal("150"),
            "all_lines_received": False,
        }

    def test_complete(self):
        context = receipt_guard_context(
            summarize_receipts(
                ORDER_LINES, [_receipt_line("pol-1", "200"), _receipt_line("pol-2", "100")]
            )
        )
        assert context["all_lines_received"]
        assert context["outstanding_quantity"] == Decimal("0")

    def test_no_lines(self):
        assert receipt_guard_context(())["all_lines_received"] is False
