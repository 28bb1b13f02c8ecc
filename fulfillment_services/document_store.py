"""
Document stores and the in-memory repository.

Responsibility:
    Keyed storage of staged documents, one store per ``DocumentType``, and a
    repository that applies a ``ChangeSet`` across stores all-or-nothing.

Architecture position:
    Services -- persistence port.  Module services depend on the
    ``DocumentRepository`` protocol; ``InMemoryDocumentRepository`` backs tests
    and embedded use, ``SqlAlchemyDocumentRepository`` backs a database.

Invariants:
    - Documents are immutable values; ``update`` replaces the stored value.
    - ``commit`` preflights every step before the first write.  A failure
      while applying restores every store to its pre-commit snapshot and
      raises ``OrchestrationFailure``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, Protocol, TypeVar

from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.exceptions import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    FulfillmentError,
    OrchestrationFailure,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_services.orchestration import ChangeSet, ChangeStep, StepKind

logger = get_logger("services.document_store")

T = TypeVar("T")


class DocumentStore(Protocol[T]):
    """Keyed access to the documents of one type."""

    def get(self, document_id: str) -> T: ...

    def find(self, document_id: str) -> T | None: ...

    def list(self, predicate: Callable[[T], bool] | None = None) -> tuple[T, ...]: ...

    def create(self, document: T) -> T: ...

    def update(self, document: T) -> T: ...


class DocumentRepository(Protocol):
    """All stores of a deployment plus atomic change-set commit."""

    def store(self, document_type: DocumentType) -> DocumentStore[Any]: ...

    def commit(self, change_set: ChangeSet, action: str = "commit") -> None: ...


class InMemoryDocumentStore(Generic[T]):
    """Dictionary-backed store; listing preserves insertion order."""

    def __init__(self, document_type: DocumentType):
        self.document_type = document_type
        self._documents: dict[str, T] = {}

    def get(self, document_id: str) -> T:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(self.document_type.value, document_id)
        return document

    def find(self, document_id: str) -> T | None:
        return self._documents.get(document_id)

    def list(self, predicate: Callable[[T], bool] | None = None) -> tuple[T, ...]:
        if predicate is None:
            return tuple(self._documents.values())
        return tuple(doc for doc in self._documents.values() if predicate(doc))

    def create(self, document: T) -> T:
        if document.id in self._documents:
            raise DuplicateDocumentError(self.document_type.value, document.id)
        self._documents[document.id] = document
        return document

    def update(self, document: T) -> T:
        if document.id not in self._documents:
            raise DocumentNotFoundError(self.document_type.value, document.id)
        self._documents[document.id] = document
        return document

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def snapshot(self) -> dict[str, T]:
        return dict(self._documents)

    def restore(self, snapshot: dict[str, T]) -> None:
        self._documents = dict(snapshot)


def preflight(
    change_set: ChangeSet,
    exists: Callable[[DocumentType, str], bool],
) -> None:
    """Check every step against current state before anything is written.

    Creates must not collide with stored documents or earlier creates in the
    same set; updates must target a stored document or an earlier create.

    Raises:
        DuplicateDocumentError, DocumentNotFoundError
    """
    created: set[tuple[DocumentType, str]] = set()
    for step in change_set:
        key = (step.document_type, step.document_id)
        present = key in created or exists(step.document_type, step.document_id)
        if step.kind is StepKind.CREATE:
            if present:
                raise DuplicateDocumentError(step.document_type.value, step.document_id)
            created.add(key)
        elif not present:
            raise DocumentNotFoundError(step.document_type.value, step.document_id)


def apply_step(store: DocumentStore[Any], step: ChangeStep) -> Any:
    if step.kind is StepKind.CREATE:
        return store.create(step.document)
    return store.update(step.document)


class InMemoryDocumentRepository:
    """One ``InMemoryDocumentStore`` per document type, committed atomically."""

    def __init__(self) -> None:
        self._stores: dict[DocumentType, InMemoryDocumentStore[Any]] = {
            document_type: InMemoryDocumentStore(document_type)
            for document_type in DocumentType
        }

    def store(self, document_type: DocumentType) -> InMemoryDocumentStore[Any]:
        return self._stores[document_type]

    def commit(self, change_set: ChangeSet, action: str = "commit") -> None:
        """Apply every step of ``change_set`` or none of them.

        Raises:
            OrchestrationFailure: a step failed preflight or apply.  Nothing
                is left written.
        """
        steps = change_set.steps
        try:
            preflight(
                change_set,
                lambda document_type, document_id: document_id in self._stores[document_type],
            )
        except FulfillmentError as exc:
            failed = _failing_step(change_set, exc)
            logger.warning(
                "change_set_preflight_failed",
                extra={"action": action, "step": failed, "error": str(exc)},
            )
            raise OrchestrationFailure(
                action=action,
                steps_succeeded=(),
                steps_failed=(failed,),
                steps_pending=tuple(s.label for s in steps if s.label != failed),
                reason=str(exc),
            ) from exc

        snapshots = {dt: store.snapshot() for dt, store in self._stores.items()}
        for index, step in enumerate(steps):
            try:
                apply_step(self._stores[step.document_type], step)
            except Exception as exc:
                for document_type, snapshot in snapshots.items():
                    self._stores[document_type].restore(snapshot)
                succeeded = [s.label for s in steps[:index]]
                logger.error(
                    "change_set_rolled_back",
                    extra={
                        "action": action,
                        "step": step.label,
                        "steps_rolled_back": succeeded,
                        "error": str(exc),
                    },
                )
                raise OrchestrationFailure(
                    action=action,
                    steps_succeeded=(),
                    steps_failed=[step.label],
                    steps_pending=[s.label for s in steps[index + 1:]],
                    reason=str(exc),
                    rolled_back=True,
                    steps_rolled_back=succeeded,
                ) from exc

        logger.info(
            "change_set_committed",
            extra={
                "action": action,
                "step_count": len(steps),
                "idempotency_keys": list(change_set.idempotency_keys),
            },
        )


def _failing_step(change_set: ChangeSet, exc: FulfillmentError) -> str:
    document_id = getattr(exc, "document_id", None)
    document_type = getattr(exc, "document_type", None)
    for step in change_set:
        if step.document_id == document_id and step.document_type.value == document_type:
            return step.label
    return "preflight"
