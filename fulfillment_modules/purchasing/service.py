"""
Purchasing Module Service (``fulfillment_modules.purchasing.service``).

Responsibility
--------------
Orchestrates the procure-to-receive pipeline: requisitions, purchase orders
(created directly or converted from an approved requisition), goods
receipts with inspection, and purchase invoices.  Pure computation is
delegated to ``fulfillment_engines``; every write goes through one
``ChangeSet`` committed by the injected ``DocumentRepository``.

Architecture position
---------------------
**Modules layer** -- ``PurchasingService`` is the sole public entry point
for purchasing operations.  It composes the line reconciler and document
aggregator, the receiving engine and the workflow executor.

Invariants enforced
-------------------
* ``line_total`` and header totals are recomputed on every line change.
* Cumulative received quantity per PO line never exceeds the ordered
  quantity, counting every non-cancelled receipt.
* ``accepted + rejected == received`` on every receipt line.
* A PO's received quantities and status follow its completed receipts and
  change in the same change set as the receipt that completes.
* A PO with any non-cancelled receipt or received quantity cannot be
  cancelled.

Failure modes
-------------
* Illegal transition, failed guard, quantity violation, bad input or
  missing reference -> ``PipelineResult`` with status ``rejected``; no
  document changes.
* Repository commit failure -> ``failed`` with ``OrchestrationFailure``;
  the repository has restored every store.

Usage::

    service = PurchasingService(repository, catalog, clock=clock)
    po = service.convert_requisition_to_purchase_order(req_id, "SUP-1").unwrap()
    service.record_goods_receipt(po.id, [
        {"order_line_id": po.lines[0].id, "received_quantity": "150"},
    ])
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple

from fulfillment_engines.aggregation import recompute_document
from fulfillment_engines.receiving import (
    receipt_guard_context,
    summarize_receipts,
    validate_new_receipt,
)
from fulfillment_engines.reconciler import validate_receipt_line
from fulfillment_kernel.domain.catalog import CatalogLookup, ReferenceSnapshot
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.domain.status import parse_status
from fulfillment_kernel.domain.values import ZERO, currency_places, to_decimal
from fulfillment_kernel.exceptions import (
    InvalidTransitionError,
    PreconditionFailedError,
    ValidationError,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_modules._service_helpers import (
    build_priced_line,
    new_id,
    next_number,
    require_status,
    required,
    run_action,
    transition,
    unique_lines,
)
from fulfillment_modules.invoicing.config import InvoicingConfig
from fulfillment_modules.invoicing.models import Invoice, InvoiceKind
from fulfillment_modules.invoicing.service import plan_invoice
from fulfillment_modules.purchasing.config import PurchasingConfig
from fulfillment_modules.purchasing.models import (
    RECEIVABLE_PO_STATUSES,
    GoodsReceipt,
    GoodsReceiptLine,
    POStatus,
    PurchaseOrder,
    PurchaseOrderLine,
    QualityStatus,
    Requisition,
    RequisitionLine,
    RequisitionStatus,
)
from fulfillment_modules.purchasing.workflows import (
    GOODS_RECEIPT_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
)
from fulfillment_services.document_store import DocumentRepository
from fulfillment_services.orchestration import ChangeSet, PipelineResult
from fulfillment_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.purchasing.service")

REQ = DocumentType.REQUISITION
PO = DocumentType.PURCHASE_ORDER
GR = DocumentType.GOODS_RECEIPT

# Purchase orders that may be invoiced
INVOICEABLE_PO_STATUSES = frozenset({POStatus.PARTIALLY_RECEIVED, POStatus.RECEIVED})


class _ReceiptQuantities(NamedTuple):
    order_line_id: str
    received_quantity: Decimal
    accepted_quantity: Decimal
    rejected_quantity: Decimal


class PurchasingService:
    """
    Orchestrates purchasing operations through engines and the repository.

    Contract
    --------
    * Every mutating method returns ``PipelineResult`` and accepts
      ``commit=False`` to return the planned change set without writing.
    * Documents are frozen values; the result carries the new version.

    Guarantees
    ----------
    * The complete change set is computed before the first write.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT move stock; inventory valuation is a separate concern.
    * Does NOT pick a supplier; conversion names one explicitly.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        catalog: CatalogLookup,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        config: PurchasingConfig | None = None,
        invoicing_config: InvoicingConfig | None = None,
    ):
        self._repository = repository
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._workflow_executor = workflow_executor or WorkflowExecutor(clock=self._clock)
        self._config = config or PurchasingConfig.with_defaults()
        self._invoicing_config = invoicing_config or InvoicingConfig.with_defaults()

    # =========================================================================
    # Internals
    # =========================================================================

    @property
    def _places(self) -> int:
        return currency_places(self._config.currency)

    def _requisition_line(self, spec: Mapping[str, Any]) -> RequisitionLine:
        return build_priced_line(
            RequisitionLine, spec, self._catalog,
            price_attr="cost_price",
            default_tax_percent=self._config.default_tax_percent,
            places=self._places,
            warehouse_id=spec.get("warehouse_id"),
        )

    def _order_line(self, spec: Mapping[str, Any]) -> PurchaseOrderLine:
        return build_priced_line(
            PurchaseOrderLine, spec, self._catalog,
            price_attr="cost_price",
            default_tax_percent=self._config.default_tax_percent,
            places=self._places,
            warehouse_id=spec.get("warehouse_id"),
            requisition_line_id=spec.get("requisition_line_id"),
        )

    def _receipts_for(self, order_id: str) -> tuple[GoodsReceipt, ...]:
        return self._repository.store(GR).list(lambda gr: gr.order_id == order_id)

    def _advance(self, workflow, document_type, document, action, context=None, **changes):
        return transition(
            self._workflow_executor, workflow, document_type, document, action,
            context, now=self._clock.now_utc(), **changes,
        )

    def _order_after_receipts(
        self,
        order: PurchaseOrder,
        completed: Sequence[GoodsReceipt],
    ) -> PurchaseOrder:
        """``order`` with cumulative quantities and status from ``completed``."""
        progress = summarize_receipts(
            order.lines, [ln for receipt in completed for ln in receipt.lines]
        )
        by_line = {p.line_id: p for p in progress}
        lines = tuple(
            replace(
                line,
                received_quantity=by_line[line.id].received,
                accepted_quantity=by_line[line.id].accepted,
                rejected_quantity=by_line[line.id].rejected,
            )
            for line in order.lines
        )
        return self._advance(
            PURCHASE_ORDER_WORKFLOW, PO, order, "receive",
            receipt_guard_context(progress), lines=lines,
        )

    def _complete_receipt(
        self,
        receipt: GoodsReceipt,
        order: PurchaseOrder,
    ) -> tuple[GoodsReceipt, PurchaseOrder]:
        """Complete ``receipt`` and roll it into ``order``."""
        completed = self._advance(
            GOODS_RECEIPT_WORKFLOW, GR, receipt, "complete",
            {"quality_resolved": all(ln.quality_status.is_resolved for ln in receipt.lines)},
        )
        already = [
            gr for gr in self._receipts_for(order.id)
            if gr.counts_toward_order and gr.id != receipt.id
        ]
        updated_order = self._order_after_receipts(order, [*already, completed])
        logger.info(
            "purchase_order_receipt_applied",
            extra={
                "order_id": order.id,
                "receipt_id": receipt.id,
                "from_status": order.status.value,
                "to_status": updated_order.status.value,
                "total_received": str(updated_order.total_received),
            },
        )
        return completed, updated_order

    # =========================================================================
    # Requisitions
    # =========================================================================

    def create_requisition(
        self,
        requested_by: str,
        lines: Sequence[Mapping[str, Any]] = (),
        *,
        requested_date: date | None = None,
        department: str | None = None,
        required_date: date | None = None,
        notes: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Requisition]:
        """Create a draft requisition; unit prices default to item cost."""

        def build() -> tuple[Requisition, ChangeSet]:
            now = self._clock.now_utc()
            on = requested_date or self._clock.today()
            requisition = recompute_document(
                Requisition(
                    id=new_id(),
                    document_no=next_number(
                        self._repository.store(REQ), self._config.requisition_prefix, on
                    ),
                    requested_by=requested_by,
                    requested_date=on,
                    lines=unique_lines([self._requisition_line(spec) for spec in lines]),
                    currency=self._config.currency,
                    department=department,
                    required_date=required_date,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.info(
                "requisition_created",
                extra={
                    "requisition_id": requisition.id,
                    "document_no": requisition.document_no,
                    "line_count": len(requisition.lines),
                    "total_amount": str(requisition.total_amount),
                },
            )
            return requisition, ChangeSet().create(REQ, requisition)

        return run_action(
            "create_requisition", self._repository, build, commit,
            document_type=REQ.value,
        )

    def update_requisition_lines(
        self,
        requisition_id: str,
        lines: Sequence[Mapping[str, Any]],
        *,
        commit: bool = True,
    ) -> PipelineResult[Requisition]:
        """Replace the lines of a draft requisition and recompute totals."""

        def build() -> tuple[Requisition, ChangeSet]:
            requisition = self._repository.store(REQ).get(requisition_id)
            edited = self._advance(
                REQUISITION_WORKFLOW, REQ, requisition, "edit_lines",
                lines=unique_lines([self._requisition_line(s) for s in lines]),
            )
            edited = recompute_document(edited)
            return edited, ChangeSet().update(REQ, edited, requisition.status)

        return run_action(
            "update_requisition_lines", self._repository, build, commit,
            document_type=REQ.value, document_id=requisition_id,
        )

    def _requisition_action(
        self,
        action: str,
        requisition_id: str,
        commit: bool,
        **changes: Any,
    ) -> PipelineResult[Requisition]:
        def build() -> tuple[Requisition, ChangeSet]:
            requisition = self._repository.store(REQ).get(requisition_id)
            moved = self._advance(
                REQUISITION_WORKFLOW, REQ, requisition, action,
                {"line_count": len(requisition.lines)}, **changes,
            )
            logger.info(
                "requisition_transitioned",
                extra={
                    "requisition_id": requisition_id,
                    "action": action,
                    "to_status": moved.status.value,
                },
            )
            return moved, ChangeSet().update(REQ, moved, requisition.status)

        return run_action(
            f"{action}_requisition", self._repository, build, commit,
            document_type=REQ.value, document_id=requisition_id,
        )

    def submit_requisition(self, requisition_id: str, *, commit: bool = True) -> PipelineResult[Requisition]:
        return self._requisition_action("submit", requisition_id, commit)

    def approve_requisition(
        self,
        requisition_id: str,
        approved_by: str | None = None,
        *,
        commit: bool = True,
    ) -> PipelineResult[Requisition]:
        """Approve a pending requisition.  Approval never creates a PO."""
        return self._requisition_action(
            "approve", requisition_id, commit,
            approved_by=approved_by, approved_date=self._clock.today(),
        )

    def reject_requisition(
        self,
        requisition_id: str,
        reason: str | None = None,
        *,
        commit: bool = True,
    ) -> PipelineResult[Requisition]:
        return self._requisition_action(
            "reject", requisition_id, commit, rejection_reason=reason,
        )

    def cancel_requisition(self, requisition_id: str, *, commit: bool = True) -> PipelineResult[Requisition]:
        return self._requisition_action("cancel", requisition_id, commit)

    # =========================================================================
    # Purchase Orders
    # =========================================================================

    def _new_order(
        self,
        supplier_id: str,
        lines: Sequence[PurchaseOrderLine],
        requisition_id: str | None,
        order_date: date | None,
        expected_date: date | None,
        shipping_address: str | None,
        payment_terms: str | None,
        notes: str | None,
        ordered_by: str | None,
    ) -> PurchaseOrder:
        supplier = self._catalog.lookup_supplier(supplier_id)
        if not supplier.is_active:
            raise ValidationError(
                f"Supplier {supplier_id} is inactive", field="supplier_id", value=supplier_id
            )
        now = self._clock.now_utc()
        on = order_date or self._clock.today()
        order = PurchaseOrder(
            id=new_id(),
            document_no=next_number(
                self._repository.store(PO), self._config.purchase_order_prefix, on
            ),
            supplier_id=supplier.id,
            order_date=on,
            lines=unique_lines(lines),
            currency=self._config.currency,
            supplier=ReferenceSnapshot.of(supplier),
            requisition_id=requisition_id,
            expected_date=expected_date,
            shipping_address=shipping_address,
            payment_terms=payment_terms or supplier.payment_terms,
            notes=notes,
            ordered_by=ordered_by,
            created_at=now,
            updated_at=now,
        )
        return recompute_document(order)

    def _approved_requisition(self, requisition_id: str) -> Requisition:
        requisition = self._repository.store(REQ).get(requisition_id)
        require_status(
            REQ, requisition, frozenset({RequisitionStatus.APPROVED}),
            "convert_to_purchase_order",
        )
        active = self._repository.store(PO).list(
            lambda po: po.requisition_id == requisition_id and po.status != POStatus.CANCELLED
        )
        if active:
            raise PreconditionFailedError(
                f"Requisition {requisition_id} is already on purchase order "
                f"{active[0].document_no}"
            )
        return requisition

    def create_purchase_order(
        self,
        supplier_id: str,
        lines: Sequence[Mapping[str, Any]],
        *,
        requisition_id: str | None = None,
        order_date: date | None = None,
        expected_date: date | None = None,
        shipping_address: str | None = None,
        payment_terms: str | None = None,
        notes: str | None = None,
        ordered_by: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[PurchaseOrder]:
        """Create a draft PO.  A referenced requisition must be approved."""

        def build() -> tuple[PurchaseOrder, ChangeSet]:
            if requisition_id is not None:
                self._approved_requisition(requisition_id)
            order = self._new_order(
                supplier_id, [self._order_line(spec) for spec in lines], requisition_id,
                order_date, expected_date, shipping_address, payment_terms, notes, ordered_by,
            )
            logger.info(
                "purchase_order_created",
                extra={
                    "order_id": order.id,
                    "document_no": order.document_no,
                    "supplier_id": supplier_id,
                    "total_amount": str(order.total_amount),
                },
            )
            return order, ChangeSet().create(PO, order)

        return run_action(
            "create_purchase_order", self._repository, build, commit,
            document_type=PO.value,
        )

    def convert_requisition_to_purchase_order(
        self,
        requisition_id: str,
        supplier_id: str,
        overrides: Mapping[str, Mapping[str, Any]] | None = None,
        *,
        order_date: date | None = None,
        expected_date: date | None = None,
        shipping_address: str | None = None,
        payment_terms: str | None = None,
        notes: str | None = None,
        ordered_by: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[PurchaseOrder]:
        """Raise a draft PO from an approved requisition.

        Requisition lines are carried as defaults: quantity, discount and
        tax as requested; unit price from the requisition when
        ``carry_requisition_prices`` is set, else the item's cost price.
        ``overrides`` maps requisition line ids to replacement values
        (``quantity``, ``unit_price``, ``discount_percent``,
        ``tax_percent``).
        """

        def build() -> tuple[PurchaseOrder, ChangeSet]:
            requisition = self._approved_requisition(requisition_id)
            overrides_by_line = dict(overrides or {})
            unknown = sorted(set(overrides_by_line) - {ln.id for ln in requisition.lines})
            if unknown:
                raise ValidationError(
                    f"Overrides reference unknown requisition lines: {', '.join(unknown)}",
                    field="overrides",
                    value=unknown,
                )

            lines = []
            for req_line in requisition.lines:
                spec: dict[str, Any] = {
                    "item_id": req_line.item_id,
                    "quantity": req_line.quantity,
                    "discount_percent": req_line.discount_percent,
                    "tax_percent": req_line.tax_percent,
                    "warehouse_id": req_line.warehouse_id,
                    "notes": req_line.notes,
                    "requisition_line_id": req_line.id,
                }
                if self._config.carry_requisition_prices and req_line.unit_price > ZERO:
                    spec["unit_price"] = req_line.unit_price
                spec.update(overrides_by_line.get(req_line.id, {}))
                lines.append(self._order_line(spec))

            order = self._new_order(
                supplier_id, lines, requisition.id,
                order_date, expected_date, shipping_address, payment_terms,
                notes or requisition.notes, ordered_by,
            )
            logger.info(
                "requisition_converted_to_purchase_order",
                extra={
                    "requisition_id": requisition.id,
                    "order_id": order.id,
                    "document_no": order.document_no,
                    "subtotal": str(order.subtotal),
                    "total_amount": str(order.total_amount),
                },
            )
            return order, ChangeSet().create(PO, order)

        return run_action(
            "convert_requisition_to_purchase_order", self._repository, build, commit,
            document_type=REQ.value, document_id=requisition_id,
        )

    def update_purchase_order_lines(
        self,
        order_id: str,
        lines: Sequence[Mapping[str, Any]],
        *,
        commit: bool = True,
    ) -> PipelineResult[PurchaseOrder]:
        """Replace the lines of a draft PO and recompute totals."""

        def build() -> tuple[PurchaseOrder, ChangeSet]:
            order = self._repository.store(PO).get(order_id)
            edited = self._advance(
                PURCHASE_ORDER_WORKFLOW, PO, order, "edit_lines",
                lines=unique_lines([self._order_line(s) for s in lines]),
            )
            edited = recompute_document(edited)
            return edited, ChangeSet().update(PO, edited, order.status)

        return run_action(
            "update_purchase_order_lines", self._repository, build, commit,
            document_type=PO.value, document_id=order_id,
        )

    def _order_action(
        self,
        action: str,
        order_id: str,
        commit: bool,
        **changes: Any,
    ) -> PipelineResult[PurchaseOrder]:
        def build() -> tuple[PurchaseOrder, ChangeSet]:
            order = self._repository.store(PO).get(order_id)
            context = {
                "line_count": len(order.lines),
                "total_received": order.total_received,
                "open_receipt_count": sum(
                    1 for gr in self._receipts_for(order_id) if gr.reserves_quantity
                ),
            }
            moved = self._advance(PURCHASE_ORDER_WORKFLOW, PO, order, action, context, **changes)
            logger.info(
                "purchase_order_transitioned",
                extra={
                    "order_id": order_id,
                    "action": action,
                    "to_status": moved.status.value,
                },
            )
            return moved, ChangeSet().update(PO, moved, order.status)

        return run_action(
            f"{action}_purchase_order", self._repository, build, commit,
            document_type=PO.value, document_id=order_id,
        )

    def submit_purchase_order(self, order_id: str, *, commit: bool = True) -> PipelineResult[PurchaseOrder]:
        return self._order_action("submit", order_id, commit)

    def approve_purchase_order(
        self,
        order_id: str,
        approved_by: str | None = None,
        *,
        commit: bool = True,
    ) -> PipelineResult[PurchaseOrder]:
        return self._order_action(
            "approve", order_id, commit,
            approved_by=approved_by, approved_date=self._clock.today(),
        )

    def confirm_purchase_order(self, order_id: str, *, commit: bool = True) -> PipelineResult[PurchaseOrder]:
        """Place the approved order with the supplier (``ordered``)."""
        return self._order_action("confirm", order_id, commit)

    def cancel_purchase_order(self, order_id: str, *, commit: bool = True) -> PipelineResult[PurchaseOrder]:
        """Cancel a PO with nothing received and no receipt recorded against it."""
        return self._order_action("cancel", order_id, commit)

    # =========================================================================
    # Goods Receipts
    # =========================================================================

    def _receipt_line(
        self,
        order: PurchaseOrder,
        quantities: _ReceiptQuantities,
        spec: Mapping[str, Any],
    ) -> GoodsReceiptLine:
        order_line = next(ln for ln in order.lines if ln.id == quantities.order_line_id)
        raw_quality = spec.get("quality_status")
        if raw_quality is not None:
            quality = parse_status(QualityStatus, raw_quality)
        elif self._config.derive_quality_from_quantities:
            quality = QualityStatus.from_quantities(
                quantities.accepted_quantity, quantities.rejected_quantity
            )
        else:
            quality = QualityStatus.PENDING
        return GoodsReceiptLine(
            id=str(spec.get("id") or new_id()),
            order_line_id=order_line.id,
            item_id=order_line.item_id,
            ordered_quantity=order_line.quantity,
            received_quantity=quantities.received_quantity,
            accepted_quantity=quantities.accepted_quantity,
            rejected_quantity=quantities.rejected_quantity,
            quality_status=quality,
            warehouse_id=spec.get("warehouse_id") or order_line.warehouse_id,
            batch_no=spec.get("batch_no"),
            lot_no=spec.get("lot_no"),
            expiry_date=spec.get("expiry_date"),
            notes=spec.get("notes"),
        )

    @staticmethod
    def _receipt_quantities(spec: Mapping[str, Any]) -> _ReceiptQuantities:
        received = to_decimal(required(spec, "received_quantity"), "received_quantity")
        rejected = to_decimal(spec.get("rejected_quantity") or ZERO, "rejected_quantity")
        raw_accepted = spec.get("accepted_quantity")
        accepted = (
            to_decimal(raw_accepted, "accepted_quantity") if raw_accepted is not None
            else received - rejected
        )
        return _ReceiptQuantities(
            order_line_id=str(required(spec, "order_line_id")),
            received_quantity=received,
            accepted_quantity=accepted,
            rejected_quantity=rejected,
        )

    def record_goods_receipt(
        self,
        order_id: str,
        lines: Sequence[Mapping[str, Any]],
        *,
        complete: bool = True,
        receipt_date: date | None = None,
        received_by: str | None = None,
        notes: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[GoodsReceipt]:
        """Record goods received against an ordered PO.

        Each line carries ``order_line_id`` and ``received_quantity`` and
        optionally ``accepted_quantity`` (default: received minus rejected),
        ``rejected_quantity`` (default 0) and ``quality_status``.  Lines are
        checked cumulatively against every non-cancelled receipt of the
        order.  With ``complete`` the receipt is completed immediately and
        the PO's quantities and status move in the same change set;
        otherwise it stays ``pending`` for inspection.
        """

        def build() -> tuple[GoodsReceipt, ChangeSet]:
            order = self._repository.store(PO).get(order_id)
            require_status(PO, order, RECEIVABLE_PO_STATUSES, "receive")
            if not lines:
                raise ValidationError("A goods receipt needs at least one line", field="lines")

            quantities = [self._receipt_quantities(spec) for spec in lines]
            if sum((q.received_quantity for q in quantities), ZERO) <= ZERO:
                raise ValidationError(
                    "A goods receipt must receive a positive quantity",
                    field="received_quantity",
                )
            prior = [
                ln for gr in self._receipts_for(order_id) if gr.reserves_quantity
                for ln in gr.lines
            ]
            validate_new_receipt(order.lines, prior, quantities)

            now = self._clock.now_utc()
            on = receipt_date or self._clock.today()
            receipt = GoodsReceipt(
                id=new_id(),
                document_no=next_number(
                    self._repository.store(GR), self._config.goods_receipt_prefix, on
                ),
                order_id=order.id,
                receipt_date=on,
                lines=tuple(
                    self._receipt_line(order, q, spec) for q, spec in zip(quantities, lines)
                ),
                received_by=received_by,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            changes = ChangeSet()
            if complete:
                receipt = self._advance(GOODS_RECEIPT_WORKFLOW, GR, receipt, "start")
                receipt, updated_order = self._complete_receipt(receipt, order)
                changes = changes.create(GR, receipt).update(PO, updated_order, order.status)
            else:
                changes = changes.create(GR, receipt)

            logger.info(
                "goods_receipt_recorded",
                extra={
                    "receipt_id": receipt.id,
                    "order_id": order_id,
                    "status": receipt.status.value,
                    "line_count": len(receipt.lines),
                    "received": str(sum((q.received_quantity for q in quantities), ZERO)),
                },
            )
            return receipt, changes

        return run_action(
            "record_goods_receipt", self._repository, build, commit,
            document_type=PO.value, document_id=order_id,
        )

    def start_goods_receipt(self, receipt_id: str, *, commit: bool = True) -> PipelineResult[GoodsReceipt]:
        def build() -> tuple[GoodsReceipt, ChangeSet]:
            receipt = self._repository.store(GR).get(receipt_id)
            started = self._advance(GOODS_RECEIPT_WORKFLOW, GR, receipt, "start")
            return started, ChangeSet().update(GR, started, receipt.status)

        return run_action(
            "start_goods_receipt", self._repository, build, commit,
            document_type=GR.value, document_id=receipt_id,
        )

    def inspect_goods_receipt(
        self,
        receipt_id: str,
        inspections: Mapping[str, Mapping[str, Any]],
        *,
        inspected_by: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[GoodsReceipt]:
        """Record inspection results per receipt line.

        ``inspections`` maps receipt line ids to ``accepted_quantity``,
        ``rejected_quantity`` and optionally ``quality_status`` (derived from
        the split when omitted).  The received quantity cannot change.
        """

        def build() -> tuple[GoodsReceipt, ChangeSet]:
            receipt = self._repository.store(GR).get(receipt_id)
            by_id = {ln.id: ln for ln in receipt.lines}
            unknown = sorted(set(inspections) - set(by_id))
            if unknown:
                raise ValidationError(
                    f"Unknown receipt lines: {', '.join(unknown)}",
                    field="line_id",
                    value=unknown,
                )
            lines = []
            for line in receipt.lines:
                result = inspections.get(line.id)
                if result is None:
                    lines.append(line)
                    continue
                accepted = to_decimal(required(result, "accepted_quantity"), "accepted_quantity")
                rejected = to_decimal(result.get("rejected_quantity") or ZERO, "rejected_quantity")
                validate_receipt_line(
                    line.ordered_quantity, line.received_quantity, accepted, rejected,
                    line_id=line.id,
                )
                raw_quality = result.get("quality_status")
                quality = (
                    parse_status(QualityStatus, raw_quality) if raw_quality is not None
                    else QualityStatus.from_quantities(accepted, rejected)
                )
                lines.append(
                    replace(
                        line,
                        accepted_quantity=accepted,
                        rejected_quantity=rejected,
                        quality_status=quality,
                        notes=result.get("notes", line.notes),
                    )
                )
            inspected = self._advance(
                GOODS_RECEIPT_WORKFLOW, GR, receipt, "inspect",
                lines=tuple(lines),
                inspected_by=inspected_by,
                inspection_date=self._clock.today(),
            )
            logger.info(
                "goods_receipt_inspected",
                extra={"receipt_id": receipt_id, "inspected_lines": sorted(inspections)},
            )
            return inspected, ChangeSet().update(GR, inspected, receipt.status)

        return run_action(
            "inspect_goods_receipt", self._repository, build, commit,
            document_type=GR.value, document_id=receipt_id,
        )

    def complete_goods_receipt(self, receipt_id: str, *, commit: bool = True) -> PipelineResult[GoodsReceipt]:
        """Complete an inspected receipt and roll it into its PO."""

        def build() -> tuple[GoodsReceipt, ChangeSet]:
            receipt = self._repository.store(GR).get(receipt_id)
            order = self._repository.store(PO).get(receipt.order_id)
            completed, updated_order = self._complete_receipt(receipt, order)
            return completed, (
                ChangeSet()
                .update(GR, completed, receipt.status)
                .update(PO, updated_order, order.status)
            )

        return run_action(
            "complete_goods_receipt", self._repository, build, commit,
            document_type=GR.value, document_id=receipt_id,
        )

    def cancel_goods_receipt(self, receipt_id: str, *, commit: bool = True) -> PipelineResult[GoodsReceipt]:
        """Cancel a receipt that has not completed; its quantity is released."""

        def build() -> tuple[GoodsReceipt, ChangeSet]:
            receipt = self._repository.store(GR).get(receipt_id)
            cancelled = self._advance(GOODS_RECEIPT_WORKFLOW, GR, receipt, "cancel")
            logger.info("goods_receipt_cancelled", extra={"receipt_id": receipt_id})
            return cancelled, ChangeSet().update(GR, cancelled, receipt.status)

        return run_action(
            "cancel_goods_receipt", self._repository, build, commit,
            document_type=GR.value, document_id=receipt_id,
        )

    # =========================================================================
    # Purchase Invoices
    # =========================================================================

    def create_purchase_invoice(
        self,
        order_id: str,
        quantities: Mapping[str, Any] | None = None,
        *,
        invoice_date: date | None = None,
        notes: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Invoice]:
        """Bill accepted, not yet invoiced quantities at PO prices."""

        def build() -> tuple[Invoice, ChangeSet]:
            order = self._repository.store(PO).get(order_id)
            if order.status not in INVOICEABLE_PO_STATUSES:
                raise InvalidTransitionError(
                    document_type=PO.value,
                    current_status=order.status.value,
                    action="invoice",
                    reason="nothing has been received",
                    document_id=order_id,
                )
            invoice = plan_invoice(
                self._repository,
                InvoiceKind.PURCHASE,
                order,
                order.supplier,
                order.supplier_id,
                lambda line: line.accepted_quantity,
                quantities,
                invoice_date or self._clock.today(),
                self._invoicing_config,
                self._clock.now_utc(),
                notes,
            )
            return invoice, ChangeSet().create(InvoiceKind.PURCHASE.document_type, invoice)

        return run_action(
            "create_purchase_invoice", self._repository, build, commit,
            document_type=PO.value, document_id=order_id,
        )

