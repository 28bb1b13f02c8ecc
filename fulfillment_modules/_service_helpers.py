"""
Shared helpers for module services.

Used by fulfillment_modules/*/service.py to build priced lines, number
documents, drive workflow transitions and turn a computed change set into a
``PipelineResult``.

Architecture: Modules layer. Imports from fulfillment_kernel,
fulfillment_engines and fulfillment_services only.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from datetime import date, datetime
from typing import Any, TypeVar
from uuid import uuid4

from fulfillment_engines.aggregation import recompute_line
from fulfillment_engines.reconciler import validate_line_inputs
from fulfillment_kernel.domain.catalog import CatalogLookup, ReferenceSnapshot
from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.domain.numbering import next_document_no
from fulfillment_kernel.domain.status import status_value
from fulfillment_kernel.domain.values import ZERO, to_decimal
from fulfillment_kernel.domain.workflow import Workflow
from fulfillment_kernel.exceptions import (
    DocumentNotFoundError,
    InvalidTransitionError,
    OrchestrationFailure,
    PreconditionFailedError,
    ReconciliationError,
    ReferenceNotFoundError,
    ValidationError,
)
from fulfillment_kernel.logging_config import LogContext, get_logger
from fulfillment_services.document_store import DocumentRepository, DocumentStore
from fulfillment_services.orchestration import ChangeSet, PipelineResult
from fulfillment_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.service_helpers")

D = TypeVar("D")
L = TypeVar("L")

# Errors that reject an action without touching any document
RECOVERABLE_ERRORS = (
    InvalidTransitionError,
    ReconciliationError,
    ValidationError,
    PreconditionFailedError,
    ReferenceNotFoundError,
    DocumentNotFoundError,
)


def new_id() -> str:
    return str(uuid4())


def next_number(store: DocumentStore[Any], prefix: str, on: date) -> str:
    """Next ``PREFIX-YYYY-NNN`` number for documents stored in ``store``."""
    return next_document_no(prefix, on.year, (doc.document_no for doc in store.list()))


def required(spec: Mapping[str, Any], key: str) -> Any:
    value = spec.get(key)
    if value is None or value == "":
        raise ValidationError(f"Missing required field '{key}'", field=key)
    return value


def build_priced_line(
    line_cls: type[L],
    spec: Mapping[str, Any],
    catalog: CatalogLookup,
    *,
    price_attr: str,
    default_tax_percent: Any = ZERO,
    places: int = 2,
    **fields: Any,
) -> L:
    """Build one priced line from a caller-supplied mapping.

    ``spec`` carries ``item_id`` and ``quantity`` and optionally
    ``unit_price`` (defaults to the item's ``price_attr``),
    ``discount_percent``, ``tax_percent``, ``notes`` and ``id``.  Extra
    ``fields`` are passed to ``line_cls`` unchanged.
    """
    item = catalog.lookup_item(str(required(spec, "item_id")))
    if not item.is_active:
        raise ValidationError(f"Item {item.id} is inactive", field="item_id", value=item.id)

    line_id = str(spec.get("id") or new_id())
    quantity = to_decimal(required(spec, "quantity"), "quantity")
    raw_price = spec.get("unit_price")
    unit_price = (
        to_decimal(raw_price, "unit_price") if raw_price is not None
        else getattr(item, price_attr)
    )
    raw_tax = spec.get("tax_percent")
    tax_percent = to_decimal(
        raw_tax if raw_tax is not None else default_tax_percent, "tax_percent"
    )
    discount_percent = to_decimal(spec.get("discount_percent") or ZERO, "discount_percent")
    validate_line_inputs(quantity, unit_price, discount_percent, tax_percent, line_id)

    line = line_cls(
        id=line_id,
        item_id=item.id,
        quantity=quantity,
        unit_price=unit_price,
        discount_percent=discount_percent,
        tax_percent=tax_percent,
        item=ReferenceSnapshot.of(item),
        notes=spec.get("notes"),
        **fields,
    )
    return recompute_line(line, places)


def transition(
    executor: WorkflowExecutor,
    workflow: Workflow,
    document_type: DocumentType,
    document: D,
    action: str,
    context: Mapping[str, Any] | None = None,
    now: datetime | None = None,
    **changes: Any,
) -> D:
    """Return ``document`` moved to the target status of ``action``.

    Raises:
        InvalidTransitionError: illegal action or failed guard.
    """
    target = executor.apply(
        workflow,
        document_type.value,
        document.id,
        status_value(document.status),
        action,
        context,
    )
    status_cls = type(document.status)
    if now is not None:
        changes.setdefault("updated_at", now)
    return replace(document, status=status_cls(target), **changes)


def require_status(
    document_type: DocumentType,
    document: Any,
    allowed: frozenset,
    action: str,
) -> None:
    """Raise InvalidTransitionError unless ``document`` is in ``allowed``."""
    if document.status not in allowed:
        raise InvalidTransitionError(
            document_type=document_type.value,
            current_status=status_value(document.status),
            action=action,
            reason="expected one of " + ", ".join(sorted(status_value(s) for s in allowed)),
            document_id=document.id,
        )


def unique_lines(lines: Sequence[L]) -> tuple[L, ...]:
    """``lines`` as a tuple; raises ValidationError on a repeated line id."""
    ids = [ln.id for ln in lines]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValidationError(
            f"Duplicate line ids: {', '.join(duplicates)}",
            field="line_id",
            value=duplicates,
        )
    return tuple(lines)


def run_action(
    action: str,
    repository: DocumentRepository,
    build: Callable[[], tuple[Any, ChangeSet]],
    commit: bool = True,
    **log_context: str | None,
) -> PipelineResult[Any]:
    """Compute a change set with ``build`` and commit it.

    Recoverable errors become a ``rejected`` result and nothing is written;
    a failed commit becomes a ``failed`` result.  Any other exception
    propagates.
    """
    with LogContext.bind(**log_context):
        try:
            value, changes = build()
        except RECOVERABLE_ERRORS as exc:
            logger.warning(
                "pipeline_action_rejected",
                extra={"action": action, "error_code": exc.code, "error": str(exc)},
            )
            return PipelineResult.rejected(action, exc)

        if not commit:
            logger.info(
                "pipeline_action_planned",
                extra={"action": action, "steps": list(changes.labels)},
            )
            return PipelineResult.planned(action, value, changes)

        try:
            repository.commit(changes, action=action)
        except OrchestrationFailure as exc:
            logger.error(
                "pipeline_action_failed",
                extra={
                    "action": action,
                    "steps_succeeded": list(exc.steps_succeeded),
                    "steps_failed": list(exc.steps_failed),
                    "rolled_back": exc.rolled_back,
                    "steps_rolled_back": list(exc.steps_rolled_back),
                },
            )
            return PipelineResult.failed(action, exc)

        logger.info(
            "pipeline_action_applied",
            extra={"action": action, "step_count": len(changes)},
        )
        return PipelineResult.applied(action, value, changes)
