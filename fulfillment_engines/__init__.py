"""
Module: fulfillment_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for higher
    layers (fulfillment_services, fulfillment_modules).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import fulfillment_kernel (domain, exceptions, utils, logging)
    and sibling engine modules.
    MUST NOT import fulfillment_services or fulfillment_modules.

Invariants enforced:
    - Purity: engines never read the clock.  ``today`` and timestamps are
      passed in by the caller.
    - Decimal-only arithmetic; floats are converted through ``str``.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - ValidationError and ReconciliationError subclasses on bad input.
"""

from fulfillment_engines.aggregation import (
    add_line,
    aggregate_totals,
    is_consistent,
    recompute_document,
    recompute_line,
    remove_line,
    replace_line,
    totals_of,
)
from fulfillment_engines.delivery import append_tracking_event, verify_append_only
from fulfillment_engines.picking import pick_guard_context, resolve_line_warehouses
from fulfillment_engines.receiving import (
    LineReceiptProgress,
    receipt_guard_context,
    summarize_receipts,
    validate_new_receipt,
)
from fulfillment_engines.reconciler import (
    LineAmounts,
    check_pick_line,
    check_receipt_line,
    compute_line_amounts,
    compute_line_total,
    validate_line_inputs,
    validate_pick_line,
    validate_receipt_line,
)
from fulfillment_engines.settlement import (
    apply_payment,
    derive_invoice_status,
    is_overdue,
    payment_guard_context,
)
from fulfillment_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "LineAmounts",
    "LineReceiptProgress",
    "add_line",
    "aggregate_totals",
    "append_tracking_event",
    "apply_payment",
    "check_pick_line",
    "check_receipt_line",
    "compute_input_fingerprint",
    "compute_line_amounts",
    "compute_line_total",
    "derive_invoice_status",
    "is_consistent",
    "is_overdue",
    "payment_guard_context",
    "pick_guard_context",
    "receipt_guard_context",
    "recompute_document",
    "recompute_line",
    "remove_line",
    "replace_line",
    "resolve_line_warehouses",
    "summarize_receipts",
    "totals_of",
    "traced_engine",
    "validate_line_inputs",
    "validate_new_receipt",
    "validate_pick_line",
    "validate_receipt_line",
    "verify_append_only",
]
