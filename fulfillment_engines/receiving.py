"""
Receiving engine -- cumulative goods receipt progress per order line.

Pure functions over order lines (``id``, ``quantity``) and receipt lines
(``order_line_id``, ``received_quantity``, ``accepted_quantity``,
``rejected_quantity``).  The caller decides which receipts count: completed
receipts drive the purchase order's status, while every non-cancelled
receipt reserves quantity for the over-receipt check.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from fulfillment_engines.reconciler import validate_receipt_line
from fulfillment_engines.tracer import traced_engine
from fulfillment_kernel.domain.values import ZERO
from fulfillment_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class LineReceiptProgress:
    """Cumulative receipt quantities for one order line."""

    line_id: str
    ordered: Decimal
    received: Decimal = ZERO
    accepted: Decimal = ZERO
    rejected: Decimal = ZERO

    @property
    def outstanding(self) -> Decimal:
        return self.ordered - self.received

    @property
    def is_fully_received(self) -> bool:
        return self.received >= self.ordered


def _sum_by_order_line(receipt_lines: Iterable[Any]) -> dict[str, tuple[Decimal, Decimal, Decimal]]:
    sums: dict[str, tuple[Decimal, Decimal, Decimal]] = {}
    for rl in receipt_lines:
        received, accepted, rejected = sums.get(rl.order_line_id, (ZERO, ZERO, ZERO))
        sums[rl.order_line_id] = (
            received + rl.received_quantity,
            accepted + rl.accepted_quantity,
            rejected + rl.rejected_quantity,
        )
    return sums


@traced_engine("receiving", "1.0")
def summarize_receipts(
    order_lines: Sequence[Any],
    receipt_lines: Iterable[Any],
) -> tuple[LineReceiptProgress, ...]:
    """Progress per order line, in order-line order."""
    sums = _sum_by_order_line(receipt_lines)
    known = {line.id for line in order_lines}
    unknown = sorted(set(sums) - known)
    if unknown:
        raise ValidationError(
            f"Receipt lines reference unknown order lines: {', '.join(unknown)}",
            field="order_line_id",
            value=unknown,
        )
    progress = []
    for line in order_lines:
        received, accepted, rejected = sums.get(line.id, (ZERO, ZERO, ZERO))
        progress.append(
            LineReceiptProgress(
                line_id=line.id,
                ordered=line.quantity,
                received=received,
                accepted=accepted,
                rejected=rejected,
            )
        )
    return tuple(progress)


def validate_new_receipt(
    order_lines: Sequence[Any],
    prior_receipt_lines: Iterable[Any],
    new_lines: Sequence[Any],
) -> None:
    """Check every line of a new receipt against cumulative prior receipts.

    Several new lines against the same order line are checked together.
    Raises OverReceiptError, QuantityMismatchError or ValidationError;
    nothing is modified either way.
    """
    by_id = {line.id: line for line in order_lines}
    prior = _sum_by_order_line(prior_receipt_lines)
    running: dict[str, Decimal] = {}
    for new in new_lines:
        order_line = by_id.get(new.order_line_id)
        if order_line is None:
            raise ValidationError(
                f"Receipt line references unknown order line {new.order_line_id}",
                field="order_line_id",
                value=new.order_line_id,
            )
        previously = prior.get(new.order_line_id, (ZERO, ZERO, ZERO))[0]
        previously += running.get(new.order_line_id, ZERO)
        validate_receipt_line(
            ordered=order_line.quantity,
            received=new.received_quantity,
            accepted=new.accepted_quantity,
            rejected=new.rejected_quantity,
            previously_received=previously,
            line_id=new.order_line_id,
        )
        running[new.order_line_id] = running.get(new.order_line_id, ZERO) + new.received_quantity


def receipt_guard_context(progress: Sequence[LineReceiptProgress]) -> dict[str, Any]:
    """Guard context for purchase order ``receive`` and ``cancel`` actions."""
    total_received = sum((p.received for p in progress), ZERO)
    return {
        "line_count": len(progress),
        "total_received": total_received,
        "outstanding_quantity": sum((p.outstanding for p in progress), ZERO),
        "all_lines_received": bool(progress) and all(p.is_fully_received for p in progress),
    }
