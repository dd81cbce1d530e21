"""Unit tests for the workflow stores."""

from __future__ import annotations

import json

import pytest

from botflow.exceptions import GraphNotFoundError, PersistenceError
from botflow.services.store import InMemoryWorkflowStore, JsonFileWorkflowStore, WorkflowStore


@pytest.fixture(params=["memory", "json"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryWorkflowStore()
    return JsonFileWorkflowStore(tmp_path / "workflows")


class TestStoreContract:
    """Behaviour shared by every store."""

    def test_satisfies_protocol(self, any_store) -> None:
        assert isinstance(any_store, WorkflowStore)

    def test_save_and_load(self, any_store, premium_graph) -> None:
        record = premium_graph.to_record()
        any_store.save(record)
        assert any_store.load("wf_premium") == record

    def test_load_missing(self, any_store) -> None:
        with pytest.raises(GraphNotFoundError) as exc_info:
            any_store.load("wf_missing")
        assert exc_info.value.graph_id == "wf_missing"

    def test_save_replaces(self, any_store, welcome_graph) -> None:
        record = welcome_graph.to_record()
        any_store.save(record)
        any_store.save(record.model_copy(update={"name": "Renamed"}))
        assert any_store.load("wf_welcome").name == "Renamed"
        assert len(any_store.list_all()) == 1

    def test_delete(self, any_store, welcome_graph) -> None:
        any_store.save(welcome_graph.to_record())
        any_store.delete("wf_welcome")
        assert any_store.list_all() == []
        with pytest.raises(GraphNotFoundError):
            any_store.delete("wf_welcome")

    def test_loaded_records_are_copies(self, any_store, welcome_graph) -> None:
        any_store.save(welcome_graph.to_record())
        loaded = any_store.load("wf_welcome")
        loaded.nodes.clear()
        assert len(any_store.load("wf_welcome").nodes) == 2


class TestJsonFileStore:
    def test_writes_camel_case_document(self, tmp_path, premium_graph) -> None:
        store = JsonFileWorkflowStore(tmp_path)
        store.save(premium_graph.to_record())

        document = json.loads((tmp_path / "wf_premium.json").read_text(encoding="utf-8"))
        assert document["boundBotIds"] == []
        assert document["connections"][0]["sourceNodeId"] == "start"
        assert not list(tmp_path.glob("*.tmp"))

    def test_list_missing_directory(self, tmp_path) -> None:
        assert JsonFileWorkflowStore(tmp_path / "nope").list_all() == []

    def test_corrupt_document(self, tmp_path) -> None:
        (tmp_path / "wf_bad.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError, match="Corrupt"):
            JsonFileWorkflowStore(tmp_path).load("wf_bad")

    def test_document_missing_fields(self, tmp_path) -> None:
        (tmp_path / "wf_bad.json").write_text('{"id": "wf_bad"}', encoding="utf-8")
        with pytest.raises(PersistenceError):
            JsonFileWorkflowStore(tmp_path).list_all()

    def test_list_can_skip_unreadable_documents(self, tmp_path, welcome_graph) -> None:
        store = JsonFileWorkflowStore(tmp_path)
        store.save(welcome_graph.to_record())
        (tmp_path / "wf_bad.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError):
            store.list_all()
        assert [r.id for r in store.list_all(skip_unreadable=True)] == ["wf_welcome"]

    @pytest.mark.parametrize("graph_id", ["../escape", "a/b", ".hidden", ""])
    def test_unsafe_ids_are_rejected(self, tmp_path, graph_id: str) -> None:
        with pytest.raises(PersistenceError, match="Unsafe"):
            JsonFileWorkflowStore(tmp_path).load(graph_id)

    def test_write_failure_is_wrapped(self, tmp_path, welcome_graph) -> None:
        blocker = tmp_path / "blocked"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        with pytest.raises(PersistenceError, match="Failed to save"):
            JsonFileWorkflowStore(blocker).save(welcome_graph.to_record())
