"""
Line-item reconciler -- pure line arithmetic and quantity invariants.

Responsibility:
    Computes a line's gross, discount, net, tax and total from
    (quantity, unit_price, discount_percent, tax_percent), and validates the
    quantity relationships between an originating order line and the
    receipt or pick lines recorded against it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Rounding:
    Every amount is rounded to currency precision with ROUND_HALF_UP from
    the exact product, never from an already rounded intermediate:

        gross      = round(qty * price)
        net        = round(qty * price * (1 - d/100))
        line_total = round(qty * price * (1 - d/100) * (1 + t/100))
        discount   = gross - net
        tax        = line_total - net

    so ``net + tax == line_total`` holds exactly on every line and document
    sums never drift.

Failure modes:
    - ValidationError for non-positive quantity, negative price, discount
      outside [0, 100], negative tax, or negative stage quantities.
    - OverReceiptError, QuantityMismatchError, OverPickError for quantity
      invariant violations.  Inputs are never clamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from fulfillment_engines.tracer import traced_engine
from fulfillment_kernel.domain.values import HUNDRED, ZERO, round_amount, to_decimal
from fulfillment_kernel.exceptions import (
    OverPickError,
    OverReceiptError,
    QuantityMismatchError,
    ReconciliationError,
    ValidationError,
)


@dataclass(frozen=True)
class LineAmounts:
    """Rounded monetary breakdown of one line."""

    gross: Decimal
    discount: Decimal
    net: Decimal
    tax: Decimal
    total: Decimal


def validate_line_inputs(
    quantity: Decimal,
    unit_price: Decimal,
    discount_percent: Decimal = ZERO,
    tax_percent: Decimal = ZERO,
    line_id: str | None = None,
) -> None:
    """Raise ValidationError unless the priced-line invariants hold."""
    suffix = f" (line {line_id})" if line_id else ""
    if quantity <= ZERO:
        raise ValidationError(
            f"Quantity must be positive, got {quantity}{suffix}",
            field="quantity",
            value=str(quantity),
        )
    if unit_price < ZERO:
        raise ValidationError(
            f"Unit price must not be negative, got {unit_price}{suffix}",
            field="unit_price",
            value=str(unit_price),
        )
    if not ZERO <= discount_percent <= HUNDRED:
        raise ValidationError(
            f"Discount percent must be between 0 and 100, got {discount_percent}{suffix}",
            field="discount_percent",
            value=str(discount_percent),
        )
    if tax_percent < ZERO:
        raise ValidationError(
            f"Tax percent must not be negative, got {tax_percent}{suffix}",
            field="tax_percent",
            value=str(tax_percent),
        )


@traced_engine(
    "line_reconciler",
    "1.0",
    fingerprint_fields=("quantity", "unit_price", "discount_percent", "tax_percent", "places"),
)
def compute_line_amounts(
    quantity: Decimal,
    unit_price: Decimal,
    discount_percent: Decimal = ZERO,
    tax_percent: Decimal = ZERO,
    places: int = 2,
) -> LineAmounts:
    """Breakdown of one priced line, rounded to ``places``."""
    quantity = to_decimal(quantity, "quantity")
    unit_price = to_decimal(unit_price, "unit_price")
    discount_percent = to_decimal(discount_percent, "discount_percent")
    tax_percent = to_decimal(tax_percent, "tax_percent")
    validate_line_inputs(quantity, unit_price, discount_percent, tax_percent)

    gross_exact = quantity * unit_price
    net_exact = gross_exact * (HUNDRED - discount_percent) / HUNDRED
    total_exact = net_exact * (HUNDRED + tax_percent) / HUNDRED

    gross = round_amount(gross_exact, places)
    net = round_amount(net_exact, places)
    total = round_amount(total_exact, places)
    return LineAmounts(
        gross=gross,
        discount=gross - net,
        net=net,
        tax=total - net,
        total=total,
    )


def compute_line_total(
    quantity: Decimal,
    unit_price: Decimal,
    discount_percent: Decimal = ZERO,
    tax_percent: Decimal = ZERO,
    places: int = 2,
) -> Decimal:
    """``(qty * price) * (1 - d/100) * (1 + t/100)`` rounded half-up."""
    return compute_line_amounts(
        quantity, unit_price, discount_percent, tax_percent, places
    ).total


# ---------------------------------------------------------------------------
# Quantity reconciliation
# ---------------------------------------------------------------------------


def _require_non_negative(value: Decimal, field: str, line_id: str | None) -> None:
    if value < ZERO:
        raise ValidationError(
            f"{field} must not be negative, got {value}"
            + (f" (line {line_id})" if line_id else ""),
            field=field,
            value=str(value),
        )


def check_receipt_line(
    ordered: Decimal,
    received: Decimal,
    accepted: Decimal,
    rejected: Decimal,
    previously_received: Decimal = ZERO,
    line_id: str | None = None,
) -> ReconciliationError | None:
    """Return the first quantity violation of a receipt line, or None.

    ``previously_received`` is what earlier receipts against the same order
    line already took, so the check is cumulative.  Negative quantities are
    malformed input and raise ValidationError.
    """
    for name, value in (
        ("received_quantity", received),
        ("accepted_quantity", accepted),
        ("rejected_quantity", rejected),
        ("previously_received", previously_received),
    ):
        _require_non_negative(value, name, line_id)

    if previously_received + received > ordered:
        return OverReceiptError(
            ordered=str(ordered),
            previously_received=str(previously_received),
            received=str(received),
            line_id=line_id,
        )
    if accepted + rejected != received:
        return QuantityMismatchError(
            received=str(received),
            accepted=str(accepted),
            rejected=str(rejected),
            line_id=line_id,
        )
    return None


def validate_receipt_line(
    ordered: Decimal,
    received: Decimal,
    accepted: Decimal,
    rejected: Decimal,
    previously_received: Decimal = ZERO,
    line_id: str | None = None,
) -> None:
    """Raise OverReceiptError or QuantityMismatchError on a bad receipt line."""
    error = check_receipt_line(
        ordered, received, accepted, rejected, previously_received, line_id
    )
    if error is not None:
        raise error


def check_pick_line(
    ordered: Decimal,
    picked: Decimal,
    line_id: str | None = None,
) -> ReconciliationError | None:
    """Return OverPickError if ``picked > ordered``, else None.

    A pick below the ordered quantity is a legal partial pick.
    """
    _require_non_negative(picked, "picked_quantity", line_id)
    if picked > ordered:
        return OverPickError(ordered=str(ordered), picked=str(picked), line_id=line_id)
    return None


def validate_pick_line(
    ordered: Decimal,
    picked: Decimal,
    line_id: str | None = None,
) -> None:
    error = check_pick_line(ordered, picked, line_id)
    if error is not None:
        raise error
