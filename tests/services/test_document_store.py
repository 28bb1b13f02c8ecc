"""Tests for the in-memory document store and repository (fulfillment_services/document_store.py)."""

from dataclasses import dataclass

import pytest

from fulfillment_kernel.domain.documents import DocumentType
from fulfillment_kernel.exceptions import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    OrchestrationFailure,
)
from fulfillment_services.document_store import (
    InMemoryDocumentRepository,
    InMemoryDocumentStore,
    preflight,
)
from fulfillment_services.orchestration import ChangeSet

SO = DocumentType.SALES_ORDER
PL = DocumentType.PICKLIST


@dataclass(frozen=True)
class _Doc:
    id: str
    status: str


class TestStore:

    def test_crud(self):
        store = InMemoryDocumentStore(SO)
        store.create(_Doc("so-1", "draft"))
        store.create(_Doc("so-2", "confirmed"))
        assert store.get("so-1").status == "draft"
        assert store.find("nope") is None
        assert "so-2" in store
        assert len(store) == 2
        assert [d.id for d in store.list(lambda d: d.status == "confirmed")] == ["so-2"]
        store.update(_Doc("so-1", "confirmed"))
        assert [d.id for d in store.list()] == ["so-1", "so-2"]

    def test_errors(self):
        store = InMemoryDocumentStore(SO)
        store.create(_Doc("so-1", "draft"))
        with pytest.raises(DuplicateDocumentError):
            store.create(_Doc("so-1", "draft"))
        with pytest.raises(DocumentNotFoundError) as exc_info:
            store.update(_Doc("so-9", "draft"))
        assert exc_info.value.document_type == "sales_order"
        with pytest.raises(DocumentNotFoundError):
            store.get("so-9")


class TestPreflight:

    def test_update_after_create_in_same_set(self):
        changes = ChangeSet().create(SO, _Doc("so-1", "draft")).update(SO, _Doc("so-1", "confirmed"))
        preflight(changes, lambda document_type, document_id: False)

    def test_duplicate_create_in_same_set(self):
        changes = ChangeSet().create(SO, _Doc("so-1", "draft")).create(SO, _Doc("so-1", "draft"))
        with pytest.raises(DuplicateDocumentError):
            preflight(changes, lambda document_type, document_id: False)

    def test_update_of_missing_document(self):
        with pytest.raises(DocumentNotFoundError):
            preflight(ChangeSet().update(PL, _Doc("pl-1", "completed")), lambda *_: False)


class TestRepositoryCommit:

    def test_commit(self, captured_logs):
        repository = InMemoryDocumentRepository()
        repository.commit(ChangeSet().create(SO, _Doc("so-1", "draft")), action="create")
        assert repository.store(SO).get("so-1").status == "draft"
        committed = [r for r in captured_logs() if r["message"] == "change_set_committed"]
        assert committed[0]["idempotency_keys"] == ["sales_order:so-1:draft"]

    def test_preflight_failure_writes_nothing(self, captured_logs):
        repository = InMemoryDocumentRepository()
        changes = (
            ChangeSet()
            .create(SO, _Doc("so-1", "draft"))
            .update(PL, _Doc("pl-1", "completed"), "in_progress")
        )
        with pytest.raises(OrchestrationFailure) as exc_info:
            repository.commit(changes, action="complete_picklist")
        assert exc_info.value.steps_failed == ("update picklist pl-1",)
        assert exc_info.value.steps_succeeded == ()
        assert not exc_info.value.rolled_back
        assert len(repository.store(SO)) == 0
        assert any(r["message"] == "change_set_preflight_failed" for r in captured_logs())

    def test_apply_failure_rolls_back(self, monkeypatch, captured_logs):
        repository = InMemoryDocumentRepository()
        repository.commit(ChangeSet().create(PL, _Doc("pl-1", "in_progress")))
        repository.commit(ChangeSet().create(SO, _Doc("so-1", "confirmed")))

        def broken_update(document):
            raise RuntimeError("disk full")

        monkeypatch.setattr(repository.store(SO), "update", broken_update)
        changes = (
            ChangeSet()
            .update(PL, _Doc("pl-1", "completed"), "in_progress")
            .update(SO, _Doc("so-1", "picked"), "confirmed")
        )
        with pytest.raises(OrchestrationFailure) as exc_info:
            repository.commit(changes, action="complete_picklist")
        failure = exc_info.value
        assert failure.rolled_back
        assert failure.steps_succeeded == ()
        assert failure.steps_rolled_back == ("update picklist pl-1",)
        assert failure.steps_failed == ("update sales_order so-1",)
        assert repository.store(PL).get("pl-1").status == "in_progress"
        assert any(r["message"] == "change_set_rolled_back" for r in captured_logs())
