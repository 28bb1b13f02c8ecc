"""
Sales Module Service (``fulfillment_modules.sales.service``).

Responsibility
--------------
Orchestrates the order-to-delivery pipeline: sales orders, picklists
generated from them, dispatches of completed picklists with their delivery
tracking history, explicit order completion, and sales invoices.

Architecture position
---------------------
**Modules layer** -- ``SalesService`` is the sole public entry point for
sales operations.  Warehouse resolution lives in
``fulfillment_engines.picking``, pick quantity checks in
``fulfillment_engines.reconciler`` and tracking history in
``fulfillment_engines.delivery``.

Invariants enforced
-------------------
* At most one non-cancelled picklist per sales order and one
  non-cancelled dispatch per picklist.
* A picklist is picked in exactly one warehouse.
* ``picked_quantity <= ordered_quantity`` on every picklist line; a
  smaller pick is a legal partial pick.
* Tracking history is append-only and follows the delivery tracking
  workflow.
* Cross-document moves (picklist complete -> order picked, dispatch ->
  order dispatched) are one change set.
* Completion is explicit and never regresses a cancelled order.

Failure modes
-------------
* Illegal transition, failed guard, over-pick, ambiguous warehouse,
  duplicate active picklist or dispatch -> ``PipelineResult`` with status
  ``rejected``; no document changes.
* Repository commit failure -> ``failed`` with ``OrchestrationFailure``.

Usage::

    service = SalesService(repository, catalog, clock=clock)
    order = service.create_sales_order("CUST-1", [{"item_id": "ITEM-1", "quantity": 75}]).unwrap()
    picklist = service.generate_picklist(order.id).unwrap()
    service.record_pick(picklist.id, picklist.lines[0].id, 60)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from fulfillment_engines.aggregation import recompute_document
from fulfillment_engines.delivery import append_tracking_event
from fulfillment_engines.picking import pick_guard_context, resolve_line_warehouses
from fulfillment_engines.reconciler import validate_pick_line
from fulfillment_kernel.domain.catalog import CatalogLookup, ReferenceSnapshot
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.domain.status import parse_status
from fulfillment_kernel.domain.values import currency_places, to_decimal
from fulfillment_kernel.exceptions import (
    ActiveDispatchExistsError,
    ActivePicklistExistsError,
    InvalidTransitionError,
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
from fulfillment_modules.invoicing.models import Invoice, InvoiceKind, InvoiceStatus
from fulfillment_modules.invoicing.service import plan_invoice
from fulfillment_modules.sales.config import SalesConfig
from fulfillment_modules.sales.models import (
    INVOICEABLE_ORDER_STATUSES,
    PICKABLE_ORDER_STATUSES,
    DeliveryTrackingEvent,
    Dispatch,
    DispatchDetails,
    DispatchStatus,
    Picklist,
    PicklistLine,
    PicklistStatus,
    SalesOrder,
    SalesOrderLine,
    SalesOrderStatus,
    TrackingStatus,
)
from fulfillment_modules.sales.workflows import (
    DELIVERY_TRACKING_WORKFLOW,
    DISPATCH_WORKFLOW,
    PICKLIST_WORKFLOW,
    SALES_ORDER_WORKFLOW,
)
from fulfillment_services.document_store import DocumentRepository
from fulfillment_services.orchestration import ChangeSet, PipelineResult
from fulfillment_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.sales.service")

SO = DocumentType.SALES_ORDER
PL = DocumentType.PICKLIST
DSP = DocumentType.DISPATCH

# Tracking status recorded through record_tracking_event -> tracking action
_INTERMEDIATE_TRACKING_ACTIONS = {
    TrackingStatus.OUT_FOR_DELIVERY: "out_for_delivery",
    TrackingStatus.FAILED: "fail",
    TrackingStatus.IN_TRANSIT: "reattempt",
}


class SalesService:
    """
    Orchestrates sales operations through engines and the repository.

    Contract
    --------
    * Every mutating method returns ``PipelineResult`` and accepts
      ``commit=False`` to return the planned change set without writing.

    Guarantees
    ----------
    * The complete change set is computed before the first write.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT reserve or decrement stock.
    * Does NOT split an order across warehouses.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        catalog: CatalogLookup,
        workflow_executor: WorkflowExecutor | None = None,
        clock: Clock | None = None,
        config: SalesConfig | None = None,
        invoicing_config: InvoicingConfig | None = None,
    ):
        self._repository = repository
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._workflow_executor = workflow_executor or WorkflowExecutor(clock=self._clock)
        self._config = config or SalesConfig.with_defaults()
        self._invoicing_config = invoicing_config or InvoicingConfig.with_defaults()

    # =========================================================================
    # Internals
    # =========================================================================

    def _advance(self, workflow, document_type, document, action, context=None, **changes):
        return transition(
            self._workflow_executor, workflow, document_type, document, action,
            context, now=self._clock.now_utc(), **changes,
        )

    def _order_line(self, spec: Mapping[str, Any]) -> SalesOrderLine:
        item = self._catalog.lookup_item(str(required(spec, "item_id")))
        warehouse_id = spec.get("warehouse_id") or item.default_warehouse_id
        warehouse = (
            ReferenceSnapshot.of(self._catalog.lookup_warehouse(warehouse_id))
            if warehouse_id else None
        )
        return build_priced_line(
            SalesOrderLine, spec, self._catalog,
            price_attr="selling_price",
            default_tax_percent=self._config.default_tax_percent,
            places=currency_places(self._config.currency),
            warehouse_id=warehouse_id,
            warehouse=warehouse,
        )

    def _picklists_for(self, order_id: str) -> tuple[Picklist, ...]:
        return self._repository.store(PL).list(lambda pl: pl.order_id == order_id)

    def _dispatches_for_order(self, order_id: str) -> tuple[Dispatch, ...]:
        return self._repository.store(DSP).list(lambda d: d.order_id == order_id)

    def _tracking_event(
        self,
        dispatch: Dispatch,
        action: str,
        timestamp: datetime,
        location: str | None,
        notes: str | None,
        recorded_by: str | None = None,
        delivered_to: str | None = None,
    ) -> tuple[DeliveryTrackingEvent, ...]:
        """History of ``dispatch`` with the event ``action`` leads to appended."""
        if action == "dispatch":
            if dispatch.tracking:
                raise ValidationError(
                    "Tracking history already started", field="tracking"
                )
            status = TrackingStatus(DELIVERY_TRACKING_WORKFLOW.initial_state)
        else:
            last = dispatch.last_tracking_status
            if last is None:
                raise InvalidTransitionError(
                    document_type=DSP.value,
                    current_status=dispatch.status.value,
                    action=action,
                    reason="dispatch has no tracking history",
                    document_id=dispatch.id,
                )
            status = TrackingStatus(
                self._workflow_executor.apply(
                    DELIVERY_TRACKING_WORKFLOW, "delivery_tracking", dispatch.id,
                    last.value, action,
                )
            )
        event = DeliveryTrackingEvent(
            id=new_id(),
            dispatch_id=dispatch.id,
            status=status,
            timestamp=timestamp,
            location=location,
            notes=notes,
            recorded_by=recorded_by,
            delivered_to=delivered_to,
        )
        return append_tracking_event(dispatch.tracking, event)

    def _dispatch_now(
        self,
        dispatch: Dispatch,
        order: SalesOrder,
        location: str | None,
        notes: str | None,
    ) -> tuple[Dispatch, SalesOrder]:
        now = self._clock.now_utc()
        dispatched = self._advance(DISPATCH_WORKFLOW, DSP, dispatch, "dispatch", dispatched_at=now)
        dispatched = replace(
            dispatched,
            tracking=self._tracking_event(dispatch, "dispatch", now, location, notes),
        )
        moved_order = self._advance(SALES_ORDER_WORKFLOW, SO, order, "dispatch")
        logger.info(
            "dispatch_dispatched",
            extra={
                "dispatch_id": dispatch.id,
                "order_id": order.id,
                "carrier_name": dispatch.carrier_name,
            },
        )
        return dispatched, moved_order

    def _invoices_settled(self, order_id: str) -> bool:
        invoices = [
            inv for inv in self._repository.store(DocumentType.SALES_INVOICE).list(
                lambda inv: inv.order_id == order_id
            )
            if inv.status != InvoiceStatus.CANCELLED
        ]
        return bool(invoices) and all(inv.status == InvoiceStatus.PAID for inv in invoices)

    # =========================================================================
    # Sales Orders
    # =========================================================================

    def create_sales_order(
        self,
        customer_id: str,
        lines: Sequence[Mapping[str, Any]] = (),
        *,
        order_date: date | None = None,
        required_date: date | None = None,
        shipping_address: str | None = None,
        billing_address: str | None = None,
        payment_terms: str | None = None,
        sales_person: str | None = None,
        notes: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[SalesOrder]:
        """Create a draft order; prices default to the item's selling price."""

        def build() -> tuple[SalesOrder, ChangeSet]:
            customer = self._catalog.lookup_customer(customer_id)
            if not customer.is_active:
                raise ValidationError(
                    f"Customer {customer_id} is inactive",
                    field="customer_id",
                    value=customer_id,
                )
            now = self._clock.now_utc()
            on = order_date or self._clock.today()
            order = recompute_document(
                SalesOrder(
                    id=new_id(),
                    document_no=next_number(
                        self._repository.store(SO), self._config.sales_order_prefix, on
                    ),
                    customer_id=customer.id,
                    order_date=on,
                    lines=unique_lines([self._order_line(spec) for spec in lines]),
                    currency=self._config.currency,
                    customer=ReferenceSnapshot.of(customer),
                    required_date=required_date,
                    shipping_address=shipping_address or customer.shipping_address,
                    billing_address=billing_address or customer.billing_address,
                    payment_terms=payment_terms or customer.payment_terms,
                    sales_person=sales_person,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.info(
                "sales_order_created",
                extra={
                    "order_id": order.id,
                    "document_no": order.document_no,
                    "customer_id": customer_id,
                    "total_amount": str(order.total_amount),
                },
            )
            return order, ChangeSet().create(SO, order)

        return run_action(
            "create_sales_order", self._repository, build, commit,
            document_type=SO.value,
        )

    def update_sales_order_lines(
        self,
        order_id: str,
        lines: Sequence[Mapping[str, Any]],
        *,
        commit: bool = True,
    ) -> PipelineResult[SalesOrder]:
        def build() -> tuple[SalesOrder, ChangeSet]:
            order = self._repository.store(SO).get(order_id)
            edited = self._advance(
                SALES_ORDER_WORKFLOW, SO, order, "edit_lines",
                lines=unique_lines([self._order_line(s) for s in lines]),
            )
            edited = recompute_document(edited)
            return edited, ChangeSet().update(SO, edited, order.status)

        return run_action(
            "update_sales_order_lines", self._repository, build, commit,
            document_type=SO.value, document_id=order_id,
        )

    def confirm_sales_order(self, order_id: str, *, commit: bool = True) -> PipelineResult[SalesOrder]:
        def build() -> tuple[SalesOrder, ChangeSet]:
            order = self._repository.store(SO).get(order_id)
            confirmed = self._advance(
                SALES_ORDER_WORKFLOW, SO, order, "confirm", {"line_count": len(order.lines)}
            )
            logger.info("sales_order_confirmed", extra={"order_id": order_id})
            return confirmed, ChangeSet().update(SO, confirmed, order.status)

        return run_action(
            "confirm_sales_order", self._repository, build, commit,
            document_type=SO.value, document_id=order_id,
        )

    def cancel_sales_order(self, order_id: str, *, commit: bool = True) -> PipelineResult[SalesOrder]:
        """Cancel the order together with its open picklists and dispatches."""

        def build() -> tuple[SalesOrder, ChangeSet]:
            order = self._repository.store(SO).get(order_id)
            cancelled = self._advance(SALES_ORDER_WORKFLOW, SO, order, "cancel")
            changes = ChangeSet().update(SO, cancelled, order.status)
            for picklist in self._picklists_for(order_id):
                if not PICKLIST_WORKFLOW.is_terminal(picklist.status.value):
                    changes = changes.update(
                        PL, self._advance(PICKLIST_WORKFLOW, PL, picklist, "cancel"),
                        picklist.status,
                    )
            for dispatch in self._dispatches_for_order(order_id):
                if not DISPATCH_WORKFLOW.is_terminal(dispatch.status.value):
                    changes = changes.update(
                        DSP, self._advance(DISPATCH_WORKFLOW, DSP, dispatch, "cancel"),
                        dispatch.status,
                    )
            logger.info(
                "sales_order_cancelled",
                extra={"order_id": order_id, "step_count": len(changes)},
            )
            return cancelled, changes

        return run_action(
            "cancel_sales_order", self._repository, build, commit,
            document_type=SO.value, document_id=order_id,
        )

    def complete_sales_order(self, order_id: str, *, commit: bool = True) -> PipelineResult[SalesOrder]:
        """Mark a dispatched order delivered.

        Requires a delivered dispatch and, when ``require_invoice_settlement``
        is configured, at least one sales invoice with every non-cancelled
        invoice paid.
        """

        def build() -> tuple[SalesOrder, ChangeSet]:
            order = self._repository.store(SO).get(order_id)
            context = {
                "has_delivered_dispatch": any(
                    d.status == DispatchStatus.DELIVERED
                    for d in self._dispatches_for_order(order_id)
                ),
                "require_invoice_settlement": self._config.require_invoice_settlement,
                "invoices_settled": self._invoices_settled(order_id),
            }
            completed = self._advance(SALES_ORDER_WORKFLOW, SO, order, "complete", context)
            logger.info("sales_order_completed", extra={"order_id": order_id})
            return completed, ChangeSet().update(SO, completed, order.status)

        return run_action(
            "complete_sales_order", self._repository, build, commit,
            document_type=SO.value, document_id=order_id,
        )

    # =========================================================================
    # Picklists
    # =========================================================================

    def generate_picklist(
        self,
        order_id: str,
        default_warehouse_id: str | None = None,
        *,
        assigned_to: str | None = None,
        notes: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Picklist]:
        """Create a picklist with one line per order line.

        Lines without a warehouse fall back to ``default_warehouse_id`` and
        then to the configured default; the order must resolve to exactly
        one warehouse.
        """

        def build() -> tuple[Picklist, ChangeSet]:
            order = self._repository.store(SO).get(order_id)
            require_status(SO, order, PICKABLE_ORDER_STATUSES, "generate_picklist")
            for existing in self._picklists_for(order_id):
                if existing.status != PicklistStatus.CANCELLED:
                    raise ActivePicklistExistsError(order_id, existing.id)

            warehouse_id, _ = resolve_line_warehouses(
                order_id,
                order.lines,
                default_warehouse_id or self._config.default_warehouse_id,
            )
            warehouse = self._catalog.lookup_warehouse(warehouse_id)
            now = self._clock.now_utc()
            picklist = Picklist(
                id=new_id(),
                document_no=next_number(
                    self._repository.store(PL), self._config.picklist_prefix, now.date()
                ),
                order_id=order.id,
                warehouse_id=warehouse.id,
                lines=tuple(
                    PicklistLine(
                        id=new_id(),
                        order_line_id=line.id,
                        item_id=line.item_id,
                        ordered_quantity=line.quantity,
                        item=line.item,
                        warehouse_id=warehouse.id,
                    )
                    for line in order.lines
                ),
                warehouse=ReferenceSnapshot.of(warehouse),
                assigned_to=assigned_to,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            logger.info(
                "picklist_generated",
                extra={
                    "picklist_id": picklist.id,
                    "order_id": order_id,
                    "warehouse_id": warehouse.id,
                    "line_count": len(picklist.lines),
                },
            )
            return picklist, ChangeSet().create(PL, picklist)

        return run_action(
            "generate_picklist", self._repository, build, commit,
            document_type=SO.value, document_id=order_id,
        )

    def record_pick(
        self,
        picklist_id: str,
        line_id: str,
        picked_quantity: Any,
        *,
        bin_location: str | None = None,
        batch_no: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Picklist]:
        """Record the picked quantity of one line (by line or order line id)."""

        def build() -> tuple[Picklist, ChangeSet]:
            picklist = self._repository.store(PL).get(picklist_id)
            line = next(
                (ln for ln in picklist.lines if line_id in (ln.id, ln.order_line_id)),
                None,
            )
            if line is None:
                raise ValidationError(
                    f"Picklist {picklist_id} has no line {line_id}",
                    field="line_id",
                    value=line_id,
                )
            picked = to_decimal(picked_quantity, "picked_quantity")
            validate_pick_line(line.ordered_quantity, picked, line.id)
            picked_line = replace(
                line,
                picked_quantity=picked,
                bin_location=bin_location or line.bin_location,
                batch_no=batch_no or line.batch_no,
            )
            lines = tuple(picked_line if ln.id == line.id else ln for ln in picklist.lines)
            moved = self._advance(
                PICKLIST_WORKFLOW, PL, picklist, "record_pick",
                lines=lines,
                started_at=picklist.started_at or self._clock.now_utc(),
            )
            logger.info(
                "picklist_line_picked",
                extra={
                    "picklist_id": picklist_id,
                    "line_id": line.id,
                    "ordered_quantity": str(line.ordered_quantity),
                    "picked_quantity": str(picked),
                    "partial": picked_line.is_short,
                },
            )
            return moved, ChangeSet().update(PL, moved, picklist.status)

        return run_action(
            "record_pick", self._repository, build, commit,
            document_type=PL.value, document_id=picklist_id,
        )

    def _picklist_action(
        self,
        action: str,
        picklist_id: str,
        commit: bool,
        **changes: Any,
    ) -> PipelineResult[Picklist]:
        def build() -> tuple[Picklist, ChangeSet]:
            picklist = self._repository.store(PL).get(picklist_id)
            extra = dict(changes)
            if action == "start":
                extra.setdefault("started_at", self._clock.now_utc())
            moved = self._advance(PICKLIST_WORKFLOW, PL, picklist, action, **extra)
            logger.info(
                "picklist_transitioned",
                extra={
                    "picklist_id": picklist_id,
                    "action": action,
                    "to_status": moved.status.value,
                },
            )
            return moved, ChangeSet().update(PL, moved, picklist.status)

        return run_action(
            f"{action}_picklist", self._repository, build, commit,
            document_type=PL.value, document_id=picklist_id,
        )

    def start_picklist(self, picklist_id: str, *, commit: bool = True) -> PipelineResult[Picklist]:
        return self._picklist_action("start", picklist_id, commit)

    def hold_picklist(
        self,
        picklist_id: str,
        reason: str | None = None,
        *,
        commit: bool = True,
    ) -> PipelineResult[Picklist]:
        return self._picklist_action("hold", picklist_id, commit, hold_reason=reason)

    def resume_picklist(self, picklist_id: str, *, commit: bool = True) -> PipelineResult[Picklist]:
        return self._picklist_action("resume", picklist_id, commit, hold_reason=None)

    def cancel_picklist(self, picklist_id: str, *, commit: bool = True) -> PipelineResult[Picklist]:
        return self._picklist_action("cancel", picklist_id, commit)

    def complete_picklist(self, picklist_id: str, *, commit: bool = True) -> PipelineResult[Picklist]:
        """Complete a fully recorded picklist and move its order to ``picked``.

        A still ``draft`` order is confirmed first; both moves share the
        change set with the picklist.
        """

        def build() -> tuple[Picklist, ChangeSet]:
            picklist = self._repository.store(PL).get(picklist_id)
            order = self._repository.store(SO).get(picklist.order_id)
            completed = self._advance(
                PICKLIST_WORKFLOW, PL, picklist, "complete",
                pick_guard_context(picklist.lines),
                completed_at=self._clock.now_utc(),
            )
            moved_order = order
            if order.status == SalesOrderStatus.DRAFT:
                moved_order = self._advance(
                    SALES_ORDER_WORKFLOW, SO, moved_order, "confirm",
                    {"line_count": len(order.lines)},
                )
            moved_order = self._advance(SALES_ORDER_WORKFLOW, SO, moved_order, "mark_picked")
            logger.info(
                "picklist_completed",
                extra={
                    "picklist_id": picklist_id,
                    "order_id": order.id,
                    "total_picked": str(completed.total_picked),
                    "short_lines": [ln.id for ln in completed.lines if ln.is_short],
                },
            )
            return completed, (
                ChangeSet()
                .update(PL, completed, picklist.status)
                .update(SO, moved_order, order.status)
            )

        return run_action(
            "complete_picklist", self._repository, build, commit,
            document_type=PL.value, document_id=picklist_id,
        )

    # =========================================================================
    # Dispatches
    # =========================================================================

    def create_dispatch(
        self,
        picklist_id: str,
        details: DispatchDetails | None = None,
        *,
        dispatch_now: bool = False,
        created_by: str | None = None,
        location: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Dispatch]:
        """Create a dispatch for a completed picklist.

        With ``dispatch_now`` the dispatch, its first tracking event and the
        order's move to ``dispatched`` are one change set.
        """
        details = details or DispatchDetails()

        def build() -> tuple[Dispatch, ChangeSet]:
            picklist = self._repository.store(PL).get(picklist_id)
            require_status(
                PL, picklist, frozenset({PicklistStatus.COMPLETED}), "create_dispatch"
            )
            for existing in self._repository.store(DSP).list(
                lambda d: d.picklist_id == picklist_id
            ):
                if existing.is_active:
                    raise ActiveDispatchExistsError(picklist_id, existing.id)

            order = self._repository.store(SO).get(picklist.order_id)
            now = self._clock.now_utc()
            dispatch = Dispatch(
                id=new_id(),
                document_no=next_number(
                    self._repository.store(DSP), self._config.dispatch_prefix, now.date()
                ),
                picklist_id=picklist.id,
                order_id=order.id,
                customer_id=order.customer_id,
                delivery_address=details.delivery_address or order.shipping_address,
                carrier_name=details.carrier_name,
                tracking_number=details.tracking_number,
                vehicle_number=details.vehicle_number,
                driver_name=details.driver_name,
                driver_phone=details.driver_phone,
                estimated_delivery_date=details.estimated_delivery_date,
                notes=details.notes,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            logger.info(
                "dispatch_created",
                extra={
                    "dispatch_id": dispatch.id,
                    "picklist_id": picklist_id,
                    "order_id": order.id,
                    "dispatch_now": dispatch_now,
                },
            )
            if not dispatch_now:
                return dispatch, ChangeSet().create(DSP, dispatch)

            dispatched, moved_order = self._dispatch_now(dispatch, order, location, details.notes)
            return dispatched, (
                ChangeSet()
                .create(DSP, dispatched)
                .update(SO, moved_order, order.status)
            )

        return run_action(
            "create_dispatch", self._repository, build, commit,
            document_type=PL.value, document_id=picklist_id,
        )

    def dispatch(
        self,
        dispatch_id: str,
        *,
        location: str | None = None,
        notes: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Dispatch]:
        """Hand a created dispatch to the carrier; the order moves to ``dispatched``."""

        def build() -> tuple[Dispatch, ChangeSet]:
            dispatch = self._repository.store(DSP).get(dispatch_id)
            order = self._repository.store(SO).get(dispatch.order_id)
            dispatched, moved_order = self._dispatch_now(dispatch, order, location, notes)
            return dispatched, (
                ChangeSet()
                .update(DSP, dispatched, dispatch.status)
                .update(SO, moved_order, order.status)
            )

        return run_action(
            "dispatch", self._repository, build, commit,
            document_type=DSP.value, document_id=dispatch_id,
        )

    def mark_in_transit(
        self,
        dispatch_id: str,
        *,
        location: str | None = None,
        notes: str | None = None,
        recorded_by: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Dispatch]:
        def build() -> tuple[Dispatch, ChangeSet]:
            dispatch = self._repository.store(DSP).get(dispatch_id)
            moved = self._advance(DISPATCH_WORKFLOW, DSP, dispatch, "mark_in_transit")
            moved = replace(
                moved,
                tracking=self._tracking_event(
                    dispatch, "in_transit", self._clock.now_utc(), location, notes, recorded_by
                ),
            )
            logger.info("dispatch_in_transit", extra={"dispatch_id": dispatch_id})
            return moved, ChangeSet().update(DSP, moved, dispatch.status)

        return run_action(
            "mark_in_transit", self._repository, build, commit,
            document_type=DSP.value, document_id=dispatch_id,
        )

    def record_tracking_event(
        self,
        dispatch_id: str,
        status: TrackingStatus | str,
        *,
        location: str | None = None,
        notes: str | None = None,
        recorded_by: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Dispatch]:
        """Append an intermediate event to an in-transit dispatch.

        Accepts ``out_for_delivery``, ``failed`` and ``in_transit`` (a
        reattempt after a failed delivery).  Delivery itself goes through
        ``deliver_dispatch``.
        """

        def build() -> tuple[Dispatch, ChangeSet]:
            dispatch = self._repository.store(DSP).get(dispatch_id)
            tracking_status = parse_status(TrackingStatus, status)
            action = _INTERMEDIATE_TRACKING_ACTIONS.get(tracking_status)
            if action is None:
                raise ValidationError(
                    f"Tracking status {tracking_status.value} is not an intermediate event",
                    field="status",
                    value=tracking_status.value,
                )
            require_status(
                DSP, dispatch, frozenset({DispatchStatus.IN_TRANSIT}), "record_tracking_event"
            )
            tracking = self._tracking_event(
                dispatch, action, self._clock.now_utc(), location, notes, recorded_by
            )
            updated = replace(dispatch, tracking=tracking, updated_at=self._clock.now_utc())
            logger.info(
                "dispatch_tracking_recorded",
                extra={"dispatch_id": dispatch_id, "tracking_status": tracking_status.value},
            )
            return updated, ChangeSet().update(DSP, updated, dispatch.status)

        return run_action(
            "record_tracking_event", self._repository, build, commit,
            document_type=DSP.value, document_id=dispatch_id,
        )

    def deliver_dispatch(
        self,
        dispatch_id: str,
        *,
        delivered_to: str | None = None,
        location: str | None = None,
        notes: str | None = None,
        recorded_by: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Dispatch]:
        """Record delivery.  The order stays ``dispatched`` until completed."""

        def build() -> tuple[Dispatch, ChangeSet]:
            dispatch = self._repository.store(DSP).get(dispatch_id)
            now = self._clock.now_utc()
            delivered = self._advance(DISPATCH_WORKFLOW, DSP, dispatch, "deliver", delivered_at=now)
            delivered = replace(
                delivered,
                tracking=self._tracking_event(
                    dispatch, "deliver", now, location, notes, recorded_by, delivered_to
                ),
            )
            logger.info(
                "dispatch_delivered",
                extra={"dispatch_id": dispatch_id, "order_id": dispatch.order_id},
            )
            return delivered, ChangeSet().update(DSP, delivered, dispatch.status)

        return run_action(
            "deliver_dispatch", self._repository, build, commit,
            document_type=DSP.value, document_id=dispatch_id,
        )

    def cancel_dispatch(self, dispatch_id: str, *, commit: bool = True) -> PipelineResult[Dispatch]:
        """Cancel a dispatch.

        A dispatch that already left recalls its order from ``dispatched``
        back to ``picked`` in the same change set, so a replacement dispatch
        can be created and sent.
        """

        def build() -> tuple[Dispatch, ChangeSet]:
            dispatch = self._repository.store(DSP).get(dispatch_id)
            cancelled = self._advance(DISPATCH_WORKFLOW, DSP, dispatch, "cancel")
            changes = ChangeSet().update(DSP, cancelled, dispatch.status)
            order = self._repository.store(SO).get(dispatch.order_id)
            recalled = (
                dispatch.status != DispatchStatus.CREATED
                and order.status == SalesOrderStatus.DISPATCHED
            )
            if recalled:
                changes = changes.update(
                    SO, self._advance(SALES_ORDER_WORKFLOW, SO, order, "recall"), order.status
                )
            logger.info(
                "dispatch_cancelled",
                extra={"dispatch_id": dispatch_id, "order_id": order.id, "order_recalled": recalled},
            )
            return cancelled, changes

        return run_action(
            "cancel_dispatch", self._repository, build, commit,
            document_type=DSP.value, document_id=dispatch_id,
        )

    # =========================================================================
    # Sales Invoices
    # =========================================================================

    def create_sales_invoice(
        self,
        order_id: str,
        quantities: Mapping[str, Any] | None = None,
        *,
        invoice_date: date | None = None,
        notes: str | None = None,
        commit: bool = True,
    ) -> PipelineResult[Invoice]:
        """Bill ordered, not yet invoiced quantities at order prices."""

        def build() -> tuple[Invoice, ChangeSet]:
            order = self._repository.store(SO).get(order_id)
            require_status(SO, order, INVOICEABLE_ORDER_STATUSES, "invoice")
            invoice = plan_invoice(
                self._repository,
                InvoiceKind.SALES,
                order,
                order.customer,
                order.customer_id,
                lambda line: line.quantity,
                quantities,
                invoice_date or self._clock.today(),
                self._invoicing_config,
                self._clock.now_utc(),
                notes,
            )
            return invoice, ChangeSet().create(InvoiceKind.SALES.document_type, invoice)

        return run_action(
            "create_sales_invoice", self._repository, build, commit,
            document_type=SO.value, document_id=order_id,
        )
