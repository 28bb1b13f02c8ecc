"""
Document aggregator -- header totals from line items.

Responsibility:
    Sums per-line amounts into a document's ``subtotal``, ``discount_amount``,
    ``tax_amount`` and ``total_amount``, and recomputes them on every change
    to the line collection (add, edit, remove).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Works on any frozen
    dataclass document exposing ``lines`` and ``currency`` and the four
    total fields; returns new documents, never mutates.

Invariants enforced:
    - Per-line rounding, then sum: each line is rounded by the reconciler
      and the header is an exact Decimal sum of those rounded amounts, so
      line order cannot change the result.
    - ``total == subtotal + tax == sum(line_total)`` for every document this
      module returns.
    - Idempotent: recomputing an already recomputed document is a no-op.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Any, TypeVar

from fulfillment_engines.reconciler import compute_line_amounts
from fulfillment_engines.tracer import traced_engine
from fulfillment_kernel.domain.documents import DocumentTotals, PricedLine
from fulfillment_kernel.domain.values import ZERO, currency_places
from fulfillment_kernel.exceptions import ValidationError

D = TypeVar("D")
L = TypeVar("L")


@traced_engine("document_aggregator", "1.0", fingerprint_fields=("lines", "places"))
def aggregate_totals(lines: Sequence[PricedLine], places: int = 2) -> DocumentTotals:
    """Header totals for ``lines``, each line rounded before summing."""
    subtotal = discount = tax = ZERO
    for line in lines:
        amounts = compute_line_amounts(
            line.quantity,
            line.unit_price,
            line.discount_percent,
            line.tax_percent,
            places,
        )
        subtotal += amounts.net
        discount += amounts.discount
        tax += amounts.tax
    return DocumentTotals(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        total=subtotal + tax,
    )


def recompute_line(line: L, places: int = 2) -> L:
    """Return ``line`` with ``line_total`` derived from its inputs."""
    amounts = compute_line_amounts(
        line.quantity,
        line.unit_price,
        line.discount_percent,
        line.tax_percent,
        places,
    )
    if line.line_total == amounts.total:
        return line
    return replace(line, line_total=amounts.total)


def recompute_document(document: D) -> D:
    """Recompute every line total and the header totals."""
    places = currency_places(document.currency)
    lines = tuple(recompute_line(line, places) for line in document.lines)
    totals = aggregate_totals(lines, places)
    return replace(document, lines=lines, **totals.as_fields())


def totals_of(document: Any) -> DocumentTotals:
    return DocumentTotals(
        subtotal=document.subtotal,
        discount=document.discount_amount,
        tax=document.tax_amount,
        total=document.total_amount,
    )


def is_consistent(document: Any) -> bool:
    """True when stored line and header totals match a fresh recomputation."""
    return recompute_document(document) == document


def add_line(document: D, line: Any) -> D:
    """Append ``line`` and recompute totals."""
    existing = {ln.id for ln in document.lines}
    if line.id in existing:
        raise ValidationError(f"Duplicate line id: {line.id}", field="line_id", value=line.id)
    return recompute_document(
        replace(document, lines=(*document.lines, line))
    )


def replace_line(document: D, line: Any) -> D:
    """Swap the line with ``line.id`` for ``line`` and recompute totals."""
    lines = document.lines
    if not any(ln.id == line.id for ln in lines):
        raise ValidationError(f"No line with id {line.id}", field="line_id", value=line.id)
    return recompute_document(
        replace(document, lines=tuple(line if ln.id == line.id else ln for ln in lines))
    )


def remove_line(document: D, line_id: str) -> D:
    """Drop the line with ``line_id`` and recompute totals."""
    lines = document.lines
    remaining = tuple(ln for ln in lines if ln.id != line_id)
    if len(remaining) == len(lines):
        raise ValidationError(f"No line with id {line_id}", field="line_id", value=line_id)
    return recompute_document(replace(document, lines=remaining))
