"""
fulfillment_services -- Package init and public API.

Responsibility:
    Stateful plumbing shared by every module service: the workflow
    executor, change sets and pipeline results, document stores and
    repositories (in-memory and SQLAlchemy), and the in-memory catalog.

Architecture position:
    Services -- between the pure engines and the module services.

    Dependency direction:
        fulfillment_modules/  -> fulfillment_services/  (allowed)
        fulfillment_services/ -> fulfillment_engines/   (allowed)
        fulfillment_services/ -> fulfillment_kernel/    (allowed)
        fulfillment_services/ -> fulfillment_modules/   (FORBIDDEN)
"""

from fulfillment_kernel.logging_config import get_logger

logger = get_logger("services")

from fulfillment_services.catalog import InMemoryCatalog
from fulfillment_services.document_store import (
    DocumentRepository,
    DocumentStore,
    InMemoryDocumentRepository,
    InMemoryDocumentStore,
)
from fulfillment_services.orchestration import (
    ChangeSet,
    ChangeStep,
    PipelineResult,
    PipelineStatus,
    StepKind,
    submit_change_set,
)
from fulfillment_services.sql_repository import (
    SqlAlchemyDocumentRepository,
    SqlAlchemyDocumentStore,
)
from fulfillment_services.workflow_executor import (
    GuardExecutor,
    WorkflowExecutor,
    default_guard_executor,
)

__all__ = [
    "ChangeSet",
    "ChangeStep",
    "DocumentRepository",
    "DocumentStore",
    "GuardExecutor",
    "InMemoryCatalog",
    "InMemoryDocumentRepository",
    "InMemoryDocumentStore",
    "PipelineResult",
    "PipelineStatus",
    "SqlAlchemyDocumentRepository",
    "SqlAlchemyDocumentStore",
    "StepKind",
    "WorkflowExecutor",
    "default_guard_executor",
    "submit_change_set",
]
