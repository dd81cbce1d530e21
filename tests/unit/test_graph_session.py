"""Unit tests for the graph editor session."""

from __future__ import annotations

import pytest

from botflow.exceptions import (
    ActivationError,
    GraphNotFoundError,
    InvalidEndpointError,
    NodeConfigError,
    NodeNotFoundError,
    PersistenceError,
    PortConflictError,
)
from botflow.graph.session import GraphEditorSession
from botflow.schema.graph import GraphRecord
from botflow.services.workflows import WorkflowService


@pytest.fixture
def session(store, premium_graph) -> GraphEditorSession:
    store.save(premium_graph.to_record())
    return GraphEditorSession.open(store, premium_graph.id)


class TestOpen:
    def test_open_loads_stored_graph(self, session) -> None:
        assert session.graph_id == "wf_premium"
        assert [node.id for node in session.snapshot.nodes] == ["start", "check", "vip", "regular"]
        assert not session.is_dirty

    def test_open_missing_graph(self, store) -> None:
        with pytest.raises(GraphNotFoundError):
            GraphEditorSession.open(store, "wf_missing")

    def test_open_rejects_structurally_broken_record(self, store) -> None:
        store.save(
            GraphRecord.from_document(
                {
                    "id": "wf_broken",
                    "name": "broken",
                    "nodes": [{"id": "t", "type": "trigger-command"}],
                    "connections": [{"id": "c", "sourceNodeId": "t", "targetNodeId": "ghost"}],
                }
            )
        )
        with pytest.raises(InvalidEndpointError):
            GraphEditorSession.open(store, "wf_broken")

    def test_new_session_is_dirty(self, store) -> None:
        session = GraphEditorSession.new(store, "Draft")
        assert session.is_dirty
        assert session.snapshot.nodes == []


class TestEdits:
    def test_add_node_returns_snapshot(self, session) -> None:
        snapshot = session.add_node("action-delay", {"x": 10, "y": 20}, {"delaySeconds": 2})

        assert isinstance(snapshot, GraphRecord)
        added = snapshot.nodes[-1]
        assert added.id == session.last_added_id
        assert added.config == {"delaySeconds": 2.0}
        assert session.is_dirty

    def test_connect_returns_snapshot_with_connection(self, session) -> None:
        session.add_node("action-delay", node_id="pause")
        snapshot = session.connect("vip", None, "pause", connection_id="c4")

        assert session.last_added_id == "c4"
        assert snapshot.connections[-1].source_node_id == "vip"
        assert snapshot.connections[-1].target_node_id == "pause"

    def test_failed_connect_leaves_graph_unchanged(self, session) -> None:
        before = session.snapshot
        session.add_node("action-message", node_id="extra")
        after_add = session.snapshot

        with pytest.raises(PortConflictError):
            session.connect("check", "true", "extra")
        with pytest.raises(InvalidEndpointError):
            session.connect("extra", None, "start")

        assert session.snapshot == after_add
        assert session.snapshot != before

    def test_snapshots_are_independent(self, session) -> None:
        first = session.snapshot
        session.move_node("vip", {"x": 500, "y": 80})
        assert first.nodes[2].position.x == 0.0
        assert session.snapshot.nodes[2].position.x == 500.0

    def test_patch_node_config(self, session) -> None:
        snapshot = session.patch_node_config("vip", {"text": "Welcome back, VIP"})
        assert snapshot.nodes[2].config == {"messageText": "Welcome back, VIP"}

    def test_invalid_patch_is_not_committed(self, session) -> None:
        before = session.snapshot
        with pytest.raises(NodeConfigError):
            session.patch_node_config("vip", {"messageType": "hologram"})
        assert session.snapshot == before
        assert not session.is_dirty

    def test_disconnect(self, session) -> None:
        snapshot = session.disconnect("c2")
        assert [conn.id for conn in snapshot.connections] == ["c1", "c3"]

    def test_delete_node_cascades_and_clears_selection(self, session) -> None:
        session.select("check")
        snapshot = session.delete_node("check")

        assert session.selected_node_id is None
        assert "check" not in {node.id for node in snapshot.nodes}
        assert snapshot.connections == []

    def test_delete_other_node_keeps_selection(self, session) -> None:
        session.select("vip")
        session.delete_node("regular")
        assert session.selected_node_id == "vip"


class TestSelection:
    def test_select_and_clear(self, session) -> None:
        session.select("check")
        assert session.selected_node_id == "check"
        session.select(None)
        assert session.selected_node_id is None

    def test_select_missing_node(self, session) -> None:
        with pytest.raises(NodeNotFoundError):
            session.select("ghost")

    def test_selection_is_not_persisted(self, session) -> None:
        session.select("check")
        record = session.save()
        assert "selected" not in str(record.to_document())
        assert not session.is_dirty


class TestSave:
    def test_save_persists_snapshot(self, session, store) -> None:
        session.add_node("action-delay", node_id="pause")
        session.connect("vip", None, "pause")
        session.save()

        stored = store.load("wf_premium")
        assert stored == session.snapshot
        assert not session.is_dirty

    def test_persistence_error_propagates_unchanged(self, session) -> None:
        error = PersistenceError("disk full")

        class FailingStore:
            def save(self, record):
                raise error

        session.store = FailingStore()
        session.move_node("vip", {"x": 1, "y": 1})

        with pytest.raises(PersistenceError) as exc_info:
            session.save()

        assert exc_info.value is error
        assert session.is_dirty

    def test_guard_refuses_invalid_active_graph(self, store, premium_graph, test_settings) -> None:
        premium_graph.is_active = True
        store.save(premium_graph.to_record())
        session = WorkflowService(store, settings=test_settings).open_session(premium_graph.id)
        session.disconnect("c3")

        with pytest.raises(ActivationError) as exc_info:
            session.save()

        assert any("'false'" in violation for violation in exc_info.value.violations)
        assert session.is_dirty
        assert [c.id for c in store.load("wf_premium").connections] == ["c1", "c2", "c3"]

    def test_guard_allows_edits_to_inactive_graph(self, store, premium_graph, test_settings) -> None:
        store.save(premium_graph.to_record())
        session = WorkflowService(store, settings=test_settings).open_session(premium_graph.id)
        session.disconnect("c3")
        session.save()

        assert [c.id for c in store.load("wf_premium").connections] == ["c1", "c2"]

    def test_working_graph_is_a_copy(self, session) -> None:
        graph = session.working_graph()
        graph.remove_node("vip")
        assert "vip" in {node.id for node in session.snapshot.nodes}
