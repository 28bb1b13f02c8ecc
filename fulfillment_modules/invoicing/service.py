"""
Invoicing Module Service (``fulfillment_modules.invoicing.service``).

Responsibility
--------------
Issues invoices, records payments against them, cancels unpaid invoices and
derives the display-only ``overdue`` status.  Also builds new invoices from
purchase or sales orders for the purchasing and sales services
(``plan_invoice``), so both pipelines bill the same way.

Architecture position
---------------------
**Modules layer** -- ``InvoicingService`` is shared by both pipelines.
Payment arithmetic lives in ``fulfillment_engines.settlement``; totals in
``fulfillment_engines.aggregation``.

Invariants enforced
-------------------
* ``0 <= paid_amount <= total_amount``; an overpayment is rejected, never
  clamped.
* ``overdue`` is derived from the due date on read and never stored.
* An invoice bills at most the quantity still billable on its order line
  (accepted for purchases, ordered for sales, minus earlier non-cancelled
  invoices).

Failure modes
-------------
* Illegal action or failed guard -> ``PipelineResult`` with status
  ``rejected`` carrying ``InvalidTransitionError``.
* Overpayment or non-positive payment -> ``rejected`` with
  ``ValidationError``.

Usage::

    service = InvoicingService(repository, clock=clock)
    service.issue_invoice(invoice_id)
    result = service.record_payment(invoice_id, Decimal("1000.00"))
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from fulfillment_engines.aggregation import recompute_document
from fulfillment_engines.settlement import (
    apply_payment,
    derive_invoice_status,
    is_overdue,
    payment_guard_context,
)
from fulfillment_kernel.domain.catalog import ReferenceSnapshot
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.values import ZERO, require_currency_precision, to_decimal
from fulfillment_kernel.exceptions import DocumentNotFoundError, ValidationError
from fulfillment_kernel.logging_config import get_logger
from fulfillment_modules._service_helpers import new_id, next_number, run_action, transition
from fulfillment_modules.invoicing.config import InvoicingConfig
from fulfillment_modules.invoicing.models import (
    Invoice,
    InvoiceKind,
    InvoiceLine,
    InvoiceStatus,
)
from fulfillment_modules.invoicing.workflows import INVOICE_WORKFLOW
from fulfillment_services.document_store import DocumentRepository
from fulfillment_services.orchestration import ChangeSet, PipelineResult
from fulfillment_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.invoicing.service")


# =========================================================================
# Invoice construction (used by the purchasing and sales services)
# =========================================================================


def invoiced_quantities(invoices: Sequence[Invoice]) -> dict[str, Decimal]:
    """Quantity already billed per order line by non-cancelled invoices."""
    billed: dict[str, Decimal] = {}
    for invoice in invoices:
        if invoice.status == InvoiceStatus.CANCELLED:
            continue
        for line in invoice.lines:
            if line.order_line_id is not None:
                billed[line.order_line_id] = billed.get(line.order_line_id, ZERO) + line.quantity
    return billed


def plan_invoice(
    repository: DocumentRepository,
    kind: InvoiceKind,
    order: Any,
    party: ReferenceSnapshot | None,
    party_id: str,
    billable_basis: Callable[[Any], Decimal],
    quantities: Mapping[str, Any] | None,
    invoice_date: date,
    config: InvoicingConfig,
    now: datetime,
    notes: str | None = None,
) -> Invoice:
    """Build a draft invoice for ``order``.

    ``billable_basis(line)`` is the quantity of an order line that may be
    billed in total; earlier non-cancelled invoices are subtracted.
    ``quantities`` maps order line ids to the quantity to bill now and
    defaults to everything still billable.

    Raises:
        ValidationError: unknown line, non-positive quantity, a quantity
            above what is billable, or nothing left to bill.
    """
    store = repository.store(kind.document_type)
    existing = store.list(lambda inv: inv.order_id == order.id)
    billed = invoiced_quantities(existing)
    billable = {
        line.id: billable_basis(line) - billed.get(line.id, ZERO)
        for line in order.lines
    }

    if quantities is None:
        requested = {line_id: qty for line_id, qty in billable.items() if qty > ZERO}
    else:
        requested = {}
        for line_id, raw in quantities.items():
            if line_id not in billable:
                raise ValidationError(
                    f"Order {order.id} has no line {line_id}",
                    field="order_line_id",
                    value=line_id,
                )
            qty = to_decimal(raw, "quantity")
            if qty <= ZERO:
                raise ValidationError(
                    f"Invoice quantity must be positive, got {qty}",
                    field="quantity",
                    value=str(qty),
                )
            if qty > billable[line_id]:
                raise ValidationError(
                    f"Cannot bill {qty} on line {line_id}; {billable[line_id]} is billable",
                    field="quantity",
                    value=str(qty),
                )
            requested[line_id] = qty

    if not requested:
        raise ValidationError(f"Nothing left to invoice on order {order.id}", field="lines")

    lines = tuple(
        InvoiceLine(
            id=new_id(),
            item_id=line.item_id,
            quantity=requested[line.id],
            unit_price=line.unit_price,
            discount_percent=line.discount_percent,
            tax_percent=line.tax_percent,
            item=line.item,
            order_line_id=line.id,
        )
        for line in order.lines
        if line.id in requested
    )
    prefix = (
        config.purchase_invoice_prefix if kind is InvoiceKind.PURCHASE
        else config.sales_invoice_prefix
    )
    invoice = Invoice(
        id=new_id(),
        document_no=next_number(store, prefix, invoice_date),
        kind=kind,
        order_id=order.id,
        party_id=party_id,
        invoice_date=invoice_date,
        due_date=invoice_date + timedelta(days=config.payment_terms_days),
        lines=lines,
        currency=order.currency,
        party=party,
        payment_terms=order.payment_terms,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    invoice = recompute_document(invoice)
    logger.info(
        "invoice_planned",
        extra={
            "invoice_id": invoice.id,
            "kind": kind.value,
            "order_id": order.id,
            "line_count": len(lines),
            "total_amount": str(invoice.total_amount),
        },
    )
    return invoice


# =========================================================================
# Service
# =========================================================================


class InvoicingService:
    """
    Payment lifecycle for purchase and sales invoices.

    Contract
    --------
    * Every mutating method returns ``PipelineResult``; callers inspect
      ``result.is_success``.
    * ``effective_status`` and ``list_overdue`` are reads with no side
      effects.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        config: InvoicingConfig | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._workflow_executor = workflow_executor or WorkflowExecutor(clock=self._clock)
        self._config = config or InvoicingConfig.with_defaults()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_invoice(self, invoice_id: str) -> Invoice:
        """Find an invoice of either kind."""
        for kind in InvoiceKind:
            invoice = self._repository.store(kind.document_type).find(invoice_id)
            if invoice is not None:
                return invoice
        raise DocumentNotFoundError("invoice", invoice_id)

    def effective_status(self, invoice: Invoice, today: date | None = None) -> str:
        """Stored status, or ``overdue`` when past due and unpaid."""
        return derive_invoice_status(
            invoice.status,
            invoice.total_amount,
            invoice.paid_amount,
            invoice.due_date,
            today or self._clock.today(),
        )

    def list_overdue(self, today: date | None = None) -> tuple[Invoice, ...]:
        """Invoices of both kinds that are overdue on ``today``."""
        day = today or self._clock.today()
        overdue: list[Invoice] = []
        for kind in InvoiceKind:
            overdue.extend(
                self._repository.store(kind.document_type).list(
                    lambda inv: is_overdue(
                        inv.status, inv.total_amount, inv.paid_amount, inv.due_date, day
                    )
                )
            )
        return tuple(sorted(overdue, key=lambda inv: (inv.due_date, inv.document_no)))

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def issue_invoice(self, invoice_id: str, *, commit: bool = True) -> PipelineResult[Invoice]:
        def build() -> tuple[Invoice, ChangeSet]:
            invoice = self.get_invoice(invoice_id)
            issued = transition(
                self._workflow_executor, INVOICE_WORKFLOW, invoice.kind.document_type,
                invoice, "issue",
                {"line_count": len(invoice.lines), "total_amount": invoice.total_amount},
                now=self._clock.now_utc(),
            )
            logger.info(
                "invoice_issued",
                extra={"invoice_id": invoice_id, "total_amount": str(issued.total_amount)},
            )
            return issued, ChangeSet().update(
                invoice.kind.document_type, issued, invoice.status
            )

        return run_action(
            "issue_invoice", self._repository, build, commit,
            document_id=invoice_id,
        )

    def record_payment(
        self,
        invoice_id: str,
        amount: Decimal | int | str,
        *,
        commit: bool = True,
    ) -> PipelineResult[Invoice]:
        """Add ``amount`` to the paid amount; ``paid`` once fully settled."""

        def build() -> tuple[Invoice, ChangeSet]:
            invoice = self.get_invoice(invoice_id)
            payment = require_currency_precision(
                to_decimal(amount, "amount"), invoice.currency, "amount"
            )
            new_paid = apply_payment(invoice.total_amount, invoice.paid_amount, payment)
            paid = transition(
                self._workflow_executor, INVOICE_WORKFLOW, invoice.kind.document_type,
                invoice, "record_payment",
                payment_guard_context(invoice.total_amount, new_paid),
                now=self._clock.now_utc(),
                paid_amount=new_paid,
            )
            logger.info(
                "invoice_payment_recorded",
                extra={
                    "invoice_id": invoice_id,
                    "amount": str(payment),
                    "paid_amount": str(new_paid),
                    "status": paid.status.value,
                },
            )
            return paid, ChangeSet().update(invoice.kind.document_type, paid, invoice.status)

        return run_action(
            "record_payment", self._repository, build, commit,
            document_id=invoice_id,
        )

    def cancel_invoice(self, invoice_id: str, *, commit: bool = True) -> PipelineResult[Invoice]:
        """Cancel a draft or pending invoice that has received no payment."""

        def build() -> tuple[Invoice, ChangeSet]:
            invoice = self.get_invoice(invoice_id)
            cancelled = transition(
                self._workflow_executor, INVOICE_WORKFLOW, invoice.kind.document_type,
                invoice, "cancel",
                payment_guard_context(invoice.total_amount, invoice.paid_amount),
                now=self._clock.now_utc(),
            )
            logger.info("invoice_cancelled", extra={"invoice_id": invoice_id})
            return cancelled, ChangeSet().update(
                invoice.kind.document_type, cancelled, invoice.status
            )

        return run_action(
            "cancel_invoice", self._repository, build, commit,
            document_id=invoice_id,
        )
