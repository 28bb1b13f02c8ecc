"""
fulfillment_services.workflow_executor -- Workflow transition execution.

Responsibility:
    Decides whether an action is legal for a document in its current
    status: finds the transitions declared for (status, action), evaluates
    their guards against a guard context, and returns the target status.
    Emits one structured ``workflow_transition`` record per decision.

Architecture position:
    Services layer.  Reads workflow tables from the modules, never writes
    documents.  Deterministic: the same (workflow, status, action, context)
    always gives the same result, so a retried transition is re-decided,
    never re-applied.

Invariants enforced:
    - Totality: any (status, action) pair with no declared transition fails;
      nothing is a silent no-op.
    - When several transitions share (status, action), the first whose
      guard passes wins.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.status import status_value
from fulfillment_kernel.domain.workflow import Guard, Transition, TransitionResult, Workflow
from fulfillment_kernel.exceptions import InvalidTransitionError
from fulfillment_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_NO_TRANSITION = "no_transition"


def _emit_workflow_trace(
    clock: Clock,
    workflow_name: str,
    action: str,
    entity_type: str,
    entity_id: str,
    from_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "decided_at": clock.now_utc().isoformat(),
        "workflow": workflow_name,
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    for key, value in LogContext.get_all().items():
        record.setdefault(key, value)
    logger.info("workflow_transition", extra=record)


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


def _get_attr(context: Any, key: str, default: Any = None) -> Any:
    """Get a value from the guard context (mapping or object)."""
    if context is None:
        return default
    if isinstance(context, Mapping):
        return context.get(key, default)
    return getattr(context, key, default)


def _has_lines(context: Any) -> bool:
    return (_get_attr(context, "line_count", 0) or 0) > 0


def _nothing_received(context: Any) -> bool:
    """PO cancel: nothing received and no open receipt against the order."""
    received = _get_attr(context, "total_received")
    open_receipts = _get_attr(context, "open_receipt_count", 0) or 0
    if received is None:
        return False
    return Decimal(received) == 0 and open_receipts == 0


def _quantity_outstanding(context: Any) -> bool:
    outstanding = _get_attr(context, "outstanding_quantity")
    return outstanding is not None and Decimal(outstanding) > 0


def _all_lines_received(context: Any) -> bool:
    return bool(_get_attr(context, "all_lines_received", False))


def _quality_resolved(context: Any) -> bool:
    return bool(_get_attr(context, "quality_resolved", False))


def _all_lines_picked(context: Any) -> bool:
    return bool(_get_attr(context, "all_lines_picked", False))


def _ready_for_completion(context: Any) -> bool:
    """Sales order completion: delivered dispatch, and settled invoices if required."""
    if not _get_attr(context, "has_delivered_dispatch", False):
        return False
    if _get_attr(context, "require_invoice_settlement", False):
        return bool(_get_attr(context, "invoices_settled", False))
    return True


def _fully_paid(context: Any) -> bool:
    return bool(_get_attr(context, "fully_paid", False))


def _partially_paid(context: Any) -> bool:
    return bool(_get_attr(context, "partially_paid", False))


def _no_payment(context: Any) -> bool:
    return bool(_get_attr(context, "no_payment", False))


def _nothing_due(context: Any) -> bool:
    """Invoice issue: lines present and a zero total, so it settles at once."""
    total = _get_attr(context, "total_amount")
    if total is None or not _has_lines(context):
        return False
    return Decimal(total) == 0


class GuardExecutor:
    """Evaluates workflow guards against a guard context.

    Guards are declared on transitions by name; this executor holds the
    evaluation logic per name.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Any], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[Any], bool]) -> None:
        self._evaluators[guard_name] = evaluator

    def is_registered(self, guard_name: str) -> bool:
        return guard_name in self._evaluators

    def evaluate(self, guard: Guard, context: Any = None) -> bool:
        """Evaluate a guard against context. Unknown guards never pass."""
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning(
                "guard_no_evaluator",
                extra={"guard_name": guard.name},
            )
            return False
        return bool(fn(context))


def default_guard_executor() -> GuardExecutor:
    """Return a GuardExecutor with every pipeline guard registered."""
    ex = GuardExecutor()
    ex.register("has_lines", _has_lines)
    ex.register("nothing_received", _nothing_received)
    ex.register("quantity_outstanding", _quantity_outstanding)
    ex.register("all_lines_received", _all_lines_received)
    ex.register("quality_resolved", _quality_resolved)
    ex.register("all_lines_picked", _all_lines_picked)
    ex.register("ready_for_completion", _ready_for_completion)
    ex.register("fully_paid", _fully_paid)
    ex.register("partially_paid", _partially_paid)
    ex.register("no_payment", _no_payment)
    ex.register("nothing_due", _nothing_due)
    return ex


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class WorkflowExecutor:
    """Decides workflow transitions with guard evaluation."""

    def __init__(
        self,
        guard_executor: GuardExecutor | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._guard_executor = guard_executor or default_guard_executor()
        self._clock = clock or SystemClock()

    def execute_transition(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: str,
        current_state: str,
        action: str,
        context: Mapping[str, Any] | None = None,
    ) -> TransitionResult:
        """Decide ``action`` from ``current_state``; never raises for illegal moves."""
        t0 = time.monotonic()
        state = status_value(current_state)

        candidates = workflow.candidates(state, action)
        if not candidates:
            reason = (
                f"No transition from '{state}' via action '{action}' "
                f"in workflow '{workflow.name}'"
            )
            _emit_workflow_trace(
                self._clock, workflow.name, action, entity_type, entity_id, state,
                OUTCOME_NO_TRANSITION, reason, (time.monotonic() - t0) * 1000,
            )
            return TransitionResult(success=False, reason=reason)

        chosen: Transition | None = None
        failed_guards: list[str] = []
        for transition in candidates:
            if transition.guard is None or self._guard_executor.evaluate(
                transition.guard, context or {}
            ):
                chosen = transition
                break
            failed_guards.append(transition.guard.name)

        if chosen is None:
            reason = f"Guard not satisfied: {', '.join(failed_guards)}"
            _emit_workflow_trace(
                self._clock, workflow.name, action, entity_type, entity_id, state,
                OUTCOME_GUARD_FAILED, reason, (time.monotonic() - t0) * 1000,
            )
            return TransitionResult(
                success=False,
                reason=reason,
                guard=failed_guards[0] if len(failed_guards) == 1 else None,
            )

        _emit_workflow_trace(
            self._clock, workflow.name, action, entity_type, entity_id, state,
            OUTCOME_SUCCESS, "", (time.monotonic() - t0) * 1000,
            to_state=chosen.to_state,
        )
        return TransitionResult(
            success=True,
            new_state=chosen.to_state,
            guard=chosen.guard.name if chosen.guard else None,
        )

    def apply(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: str,
        current_state: str,
        action: str,
        context: Mapping[str, Any] | None = None,
    ) -> str:
        """Target status of a legal transition.

        Raises:
            InvalidTransitionError: the action is illegal or its guard fails.
        """
        result = self.execute_transition(
            workflow, entity_type, entity_id, current_state, action, context
        )
        if not result.success:
            raise InvalidTransitionError(
                document_type=entity_type,
                current_status=status_value(current_state),
                action=action,
                reason=result.reason,
                document_id=entity_id,
            )
        return result.new_state
