"""
Settlement engine -- invoice payment arithmetic and the derived overdue status.

``overdue`` is never stored.  An invoice is overdue on a given day when it
is awaiting payment (``pending`` or ``partially_paid``), its due date is
before that day and it is not fully paid.  Everything here takes ``today``
as an argument; nothing reads the system clock.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from fulfillment_kernel.domain.status import status_value
from fulfillment_kernel.domain.values import ZERO
from fulfillment_kernel.exceptions import ValidationError

AWAITING_PAYMENT = frozenset({"pending", "partially_paid"})


def is_overdue(status: str, total: Decimal, paid: Decimal, due_date: date | None, today: date) -> bool:
    return (
        status_value(status) in AWAITING_PAYMENT
        and due_date is not None
        and due_date < today
        and paid < total
    )


def derive_invoice_status(
    status: str,
    total: Decimal,
    paid: Decimal,
    due_date: date | None,
    today: date,
) -> str:
    """The status to display: ``overdue`` when it applies, else ``status``."""
    if is_overdue(status, total, paid, due_date, today):
        return "overdue"
    return status_value(status)


def apply_payment(total: Decimal, paid: Decimal, amount: Decimal) -> Decimal:
    """New paid amount after a payment of ``amount``.

    Raises:
        ValidationError: non-positive payment or one exceeding the balance.
    """
    if amount <= ZERO:
        raise ValidationError(
            f"Payment amount must be positive, got {amount}",
            field="amount",
            value=str(amount),
        )
    new_paid = paid + amount
    if new_paid > total:
        raise ValidationError(
            f"Payment of {amount} exceeds balance due {total - paid}",
            field="amount",
            value=str(amount),
        )
    return new_paid


def payment_guard_context(total: Decimal, paid: Decimal) -> dict[str, Any]:
    """Guard context for invoice ``record_payment`` and ``cancel`` actions."""
    return {
        "total_amount": total,
        "paid_amount": paid,
        "fully_paid": paid == total,
        "partially_paid": ZERO < paid < total,
        "no_payment": paid == ZERO,
    }
