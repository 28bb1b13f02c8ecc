"""
Change sets and pipeline results.

Responsibility:
    An orchestrated action (receive goods, complete a picklist, dispatch)
    touches several documents.  The service computes every resulting
    document first, records them as an ordered ``ChangeSet`` of create and
    update steps, and only then hands the set to a repository (atomic) or to
    ``submit_change_set`` (step by step, for a non-atomic backend).

Architecture position:
    Services -- shared by every module service.  Depends on the kernel only.

Invariants:
    - A change set is immutable; ``create``/``update`` return a new set.
    - Every update step carries the idempotency key
      ``<document_type>:<document_id>:<target_status>``.
    - ``PipelineResult`` is the only thing a public service method returns;
      recoverable errors never escape as exceptions.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.domain.status import status_value
from fulfillment_kernel.exceptions import FulfillmentError, OrchestrationFailure
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.utils.idempotency import generate_idempotency_key

logger = get_logger("services.orchestration")

T = TypeVar("T")


class StepKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class ChangeStep:
    """One document write within a change set."""

    kind: StepKind
    document_type: DocumentType
    document: Any
    previous_status: str | None = None

    @property
    def document_id(self) -> str:
        return self.document.id

    @property
    def target_status(self) -> str:
        return status_value(self.document.status)

    @property
    def idempotency_key(self) -> str:
        return generate_idempotency_key(
            self.document_type.value, self.document_id, self.target_status
        )

    @property
    def label(self) -> str:
        """Short human-readable name, used in failure reports."""
        return f"{self.kind.value} {self.document_type.value} {self.document_id}"

    @property
    def changes_status(self) -> bool:
        return (
            self.kind is StepKind.CREATE
            or self.previous_status != self.target_status
        )


@dataclass(frozen=True)
class ChangeSet:
    """Ordered, immutable collection of document writes."""

    steps: tuple[ChangeStep, ...] = ()

    def create(self, document_type: DocumentType, document: Any) -> ChangeSet:
        return ChangeSet(
            (*self.steps, ChangeStep(StepKind.CREATE, document_type, document))
        )

    def update(
        self,
        document_type: DocumentType,
        document: Any,
        previous_status: Any = None,
    ) -> ChangeSet:
        previous = status_value(previous_status) if previous_status is not None else None
        return ChangeSet(
            (*self.steps, ChangeStep(StepKind.UPDATE, document_type, document, previous))
        )

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[ChangeStep]:
        return iter(self.steps)

    def __bool__(self) -> bool:
        return bool(self.steps)

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(step.label for step in self.steps)

    @property
    def idempotency_keys(self) -> tuple[str, ...]:
        return tuple(step.idempotency_key for step in self.steps)

    def documents(self, document_type: DocumentType) -> tuple[Any, ...]:
        """Final version of every document of ``document_type`` in the set."""
        latest: dict[str, Any] = {}
        for step in self.steps:
            if step.document_type is document_type:
                latest[step.document_id] = step.document
        return tuple(latest.values())

    def latest(self, document_type: DocumentType, document_id: str) -> Any | None:
        for step in reversed(self.steps):
            if step.document_type is document_type and step.document_id == document_id:
                return step.document
        return None


class PipelineStatus(str, Enum):
    """Outcome of a public service operation."""

    APPLIED = "applied"
    PLANNED = "planned"  # computed with commit=False, nothing written
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineResult(Generic[T]):
    """Result of a service operation.

    ``value`` is the primary document of the action (the new receipt, the
    updated order, ...).  ``changes`` lists every write that was (or, when
    planned, would be) made.
    """

    status: PipelineStatus
    action: str
    value: T | None = None
    error: FulfillmentError | None = None
    changes: ChangeSet = ChangeSet()

    @property
    def is_success(self) -> bool:
        return self.status in (PipelineStatus.APPLIED, PipelineStatus.PLANNED)

    @property
    def message(self) -> str | None:
        return str(self.error) if self.error is not None else None

    def unwrap(self) -> T:
        """The value of a successful result; re-raises the error otherwise."""
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def applied(cls, action: str, value: T, changes: ChangeSet) -> PipelineResult[T]:
        return cls(PipelineStatus.APPLIED, action, value=value, changes=changes)

    @classmethod
    def planned(cls, action: str, value: T, changes: ChangeSet) -> PipelineResult[T]:
        return cls(PipelineStatus.PLANNED, action, value=value, changes=changes)

    @classmethod
    def rejected(cls, action: str, error: FulfillmentError) -> PipelineResult[T]:
        return cls(PipelineStatus.REJECTED, action, error=error)

    @classmethod
    def failed(cls, action: str, error: OrchestrationFailure) -> PipelineResult[T]:
        return cls(PipelineStatus.FAILED, action, error=error)


def submit_change_set(
    change_set: ChangeSet,
    submit: Callable[[ChangeStep], Any],
    action: str = "submit_change_set",
) -> list[Any]:
    """Apply ``change_set`` step by step through a non-atomic collaborator.

    Returns the collaborator's response for every step.  On the first error
    nothing further is attempted and ``OrchestrationFailure`` reports which
    steps went through, so the caller can compensate.
    """
    responses: list[Any] = []
    steps = change_set.steps
    for index, step in enumerate(steps):
        try:
            responses.append(submit(step))
        except Exception as exc:
            succeeded = [s.label for s in steps[:index]]
            pending = [s.label for s in steps[index + 1:]]
            logger.error(
                "change_set_step_failed",
                extra={
                    "action": action,
                    "step": step.label,
                    "idempotency_key": step.idempotency_key,
                    "steps_succeeded": succeeded,
                    "steps_pending": pending,
                    "error": str(exc),
                },
            )
            raise OrchestrationFailure(
                action=action,
                steps_succeeded=succeeded,
                steps_failed=[step.label],
                steps_pending=pending,
                reason=str(exc),
            ) from exc
        logger.debug(
            "change_set_step_submitted",
            extra={"action": action, "step": step.label},
        )
    logger.info(
        "change_set_submitted",
        extra={"action": action, "step_count": len(steps)},
    )
    return responses
