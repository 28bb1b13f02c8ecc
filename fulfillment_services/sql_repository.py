"""
SQLAlchemy document repository.

Responsibility:
    Persists staged documents as JSON payload rows in
    ``fulfillment_documents`` and commits a ``ChangeSet`` inside a single
    database transaction.

Architecture position:
    Services -- persistence adapter implementing ``DocumentRepository``.
    Encoding goes through ``fulfillment_kernel.utils.serialization``;
    transactions through ``fulfillment_kernel.db.engine.session_scope``.

Failure modes:
    - Preflight or apply failure inside ``commit``: the transaction is rolled
      back and ``OrchestrationFailure`` is raised with ``rolled_back`` set.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from fulfillment_kernel.db.base import DocumentRecord
from fulfillment_kernel.db.engine import session_scope
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.domain.status import status_value
from fulfillment_kernel.exceptions import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    OrchestrationFailure,
)
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.utils.serialization import dump_document, load_document
from fulfillment_services.document_store import preflight
from fulfillment_services.orchestration import ChangeSet, StepKind

logger = get_logger("services.sql_repository")

T = TypeVar("T")


def _record_key(document_type: DocumentType, document_id: str) -> tuple[str, str]:
    return (document_type.value, document_id)


def _write(
    session: Session,
    document_type: DocumentType,
    document: Any,
    kind: StepKind,
    clock: Clock,
) -> None:
    now = clock.now_utc()
    payload = dump_document(document)
    record = session.get(DocumentRecord, _record_key(document_type, document.id))
    if kind is StepKind.CREATE:
        if record is not None:
            raise DuplicateDocumentError(document_type.value, document.id)
        session.add(
            DocumentRecord(
                document_type=document_type.value,
                document_id=document.id,
                document_no=document.document_no,
                status=status_value(document.status),
                payload=payload,
                version=1,
                created_at=now,
                updated_at=now,
            )
        )
    else:
        if record is None:
            raise DocumentNotFoundError(document_type.value, document.id)
        record.document_no = document.document_no
        record.status = status_value(document.status)
        record.payload = payload
        record.version = record.version + 1
        record.updated_at = now
    session.flush()


class SqlAlchemyDocumentStore(Generic[T]):
    """Store for one document type; each write is its own transaction."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        document_type: DocumentType,
        document_class: type[T],
        clock: Clock,
    ):
        self._session_factory = session_factory
        self.document_type = document_type
        self._document_class = document_class
        self._clock = clock

    def _decode(self, record: DocumentRecord) -> T:
        return load_document(self._document_class, record.payload)

    def find(self, document_id: str) -> T | None:
        with session_scope(self._session_factory) as session:
            record = session.get(DocumentRecord, _record_key(self.document_type, document_id))
            return self._decode(record) if record is not None else None

    def get(self, document_id: str) -> T:
        document = self.find(document_id)
        if document is None:
            raise DocumentNotFoundError(self.document_type.value, document_id)
        return document

    def list(self, predicate: Callable[[T], bool] | None = None) -> tuple[T, ...]:
        with session_scope(self._session_factory) as session:
            records = session.scalars(
                select(DocumentRecord)
                .where(DocumentRecord.document_type == self.document_type.value)
                .order_by(DocumentRecord.created_at, DocumentRecord.document_no)
            ).all()
            documents = tuple(self._decode(record) for record in records)
        if predicate is None:
            return documents
        return tuple(doc for doc in documents if predicate(doc))

    def create(self, document: T) -> T:
        with session_scope(self._session_factory) as session:
            _write(session, self.document_type, document, StepKind.CREATE, self._clock)
        return document

    def update(self, document: T) -> T:
        with session_scope(self._session_factory) as session:
            _write(session, self.document_type, document, StepKind.UPDATE, self._clock)
        return document

    def version_of(self, document_id: str) -> int:
        with session_scope(self._session_factory) as session:
            record = session.get(DocumentRecord, _record_key(self.document_type, document_id))
            if record is None:
                raise DocumentNotFoundError(self.document_type.value, document_id)
            return record.version


class SqlAlchemyDocumentRepository:
    """``DocumentRepository`` over one SQL table.

    ``document_classes`` maps each ``DocumentType`` to the dataclass its
    payload decodes into (see ``fulfillment_modules.DOCUMENT_CLASSES``).
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        document_classes: Mapping[DocumentType, type],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._stores = {
            document_type: SqlAlchemyDocumentStore(
                session_factory, document_type, document_class, self._clock
            )
            for document_type, document_class in document_classes.items()
        }

    def store(self, document_type: DocumentType) -> SqlAlchemyDocumentStore[Any]:
        return self._stores[document_type]

    def commit(self, change_set: ChangeSet, action: str = "commit") -> None:
        """Apply ``change_set`` in one transaction.

        Raises:
            OrchestrationFailure: any step failed; the transaction was rolled
                back.
        """
        steps = change_set.steps
        applied: list[str] = []
        current = None
        try:
            with session_scope(self._session_factory) as session:

                def exists(document_type: DocumentType, document_id: str) -> bool:
                    key = _record_key(document_type, document_id)
                    return session.get(DocumentRecord, key) is not None

                preflight(change_set, exists)
                for step in steps:
                    current = step
                    _write(session, step.document_type, step.document, step.kind, self._clock)
                    applied.append(step.label)
        except Exception as exc:
            failed = current.label if current is not None else "preflight"
            logger.error(
                "sql_change_set_rolled_back",
                extra={
                    "action": action,
                    "step": failed,
                    "steps_rolled_back": applied,
                    "error": str(exc),
                },
            )
            raise OrchestrationFailure(
                action=action,
                steps_succeeded=(),
                steps_failed=[failed],
                steps_pending=[s.label for s in steps if s.label not in applied and s.label != failed],
                reason=str(exc),
                rolled_back=True,
                steps_rolled_back=applied,
            ) from exc

        logger.info(
            "sql_change_set_committed",
            extra={"action": action, "step_count": len(steps)},
        )
