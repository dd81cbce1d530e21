"""Unit tests for WorkflowService: lifecycle, bindings and dispatch."""

from __future__ import annotations

import pytest

from botflow.exceptions import (
    ActivationError,
    BindingConflictError,
    GraphNotFoundError,
    InvalidEndpointError,
    PersistenceError,
)
from botflow.graph.events import ChatEvent
from botflow.services.store import JsonFileWorkflowStore
from botflow.services.workflows import WorkflowService


@pytest.fixture
def service(store, test_settings) -> WorkflowService:
    return WorkflowService(store, settings=test_settings)


@pytest.fixture
def bound_welcome(service, store, welcome_graph):
    welcome_graph.bound_bot_ids = ["shop_bot"]
    store.save(welcome_graph.to_record())
    return welcome_graph.id


def _start() -> ChatEvent:
    return ChatEvent.from_message_text("/start", chat_id=10, user_id=20)


class TestCrud:
    def test_create(self, service, store) -> None:
        record = service.create("Onboarding", "First contact", ["bot_a", "bot_a", "bot_b"])

        assert record.id.startswith("wf_")
        assert record.bound_bot_ids == ["bot_a", "bot_b"]
        assert not record.is_active
        assert store.load(record.id) == record

    def test_get_missing(self, service) -> None:
        with pytest.raises(GraphNotFoundError):
            service.get("wf_missing")

    def test_list_for_bot(self, service) -> None:
        service.create("A", bot_ids=["bot_a"])
        service.create("B", bot_ids=["bot_b"])
        service.create("AB", bot_ids=["bot_a", "bot_b"])

        assert sorted(r.name for r in service.list_for_bot("bot_a")) == ["A", "AB"]
        assert len(service.list_all()) == 3

    def test_update_replaces_record(self, service, store, welcome_graph) -> None:
        store.save(welcome_graph.to_record())
        welcome_graph.add_node("action-delay", config={"delaySeconds": 1}, node_id="pause")
        welcome_graph.add_connection("greet", None, "pause")

        service.update(welcome_graph.to_record())
        assert [n.id for n in store.load("wf_welcome").nodes] == ["start", "greet", "pause"]

    def test_update_unknown_graph(self, service, welcome_graph) -> None:
        with pytest.raises(GraphNotFoundError):
            service.update(welcome_graph.to_record())

    def test_update_rejects_structural_violation(self, service, store, welcome_graph) -> None:
        store.save(welcome_graph.to_record())
        record = welcome_graph.to_record()
        record.connections[0].target_node_id = "ghost"

        with pytest.raises(InvalidEndpointError):
            service.update(record)
        assert store.load("wf_welcome").connections[0].target_node_id == "greet"

    def test_update_keeps_active_graph_valid(self, service, bound_welcome) -> None:
        service.activate(bound_welcome)
        broken = service.get(bound_welcome)
        broken.nodes.append(broken.nodes[0].model_copy(update={"id": "check", "type": "condition-if", "config": {}}))
        broken.connections.append(
            broken.connections[0].model_copy(update={"id": "c2", "target_node_id": "check"})
        )

        with pytest.raises(ActivationError):
            service.update(broken)

    def test_save_creates_new_graph(self, service, store, welcome_graph) -> None:
        service.save(welcome_graph.to_record())
        assert store.load("wf_welcome").name == "Welcome"

    def test_save_refuses_second_active_graph_for_bot(self, service, store, bound_welcome, premium_graph) -> None:
        service.activate(bound_welcome)
        premium_graph.bound_bot_ids = ["shop_bot"]
        premium_graph.is_active = True

        with pytest.raises(BindingConflictError) as exc_info:
            service.save(premium_graph.to_record())

        assert exc_info.value.graph_id == bound_welcome
        with pytest.raises(GraphNotFoundError):
            store.load(premium_graph.id)

    def test_save_refuses_invalid_active_graph(self, service, store, premium_graph) -> None:
        premium_graph.remove_connection("c3")
        premium_graph.is_active = True

        with pytest.raises(ActivationError):
            service.save(premium_graph.to_record())
        assert store.list_all() == []

    def test_delete_unbinds_and_removes(self, service, store, bound_welcome) -> None:
        service.activate(bound_welcome)
        service.delete(bound_welcome)

        assert store.list_all() == []
        assert service.active_graph_for_bot("shop_bot") is None

    def test_open_session(self, service, bound_welcome) -> None:
        session = service.open_session(bound_welcome)
        assert session.graph_id == bound_welcome
        assert session.store is service.store


class TestBindings:
    def test_bind_and_unbind(self, service, welcome_graph, store) -> None:
        store.save(welcome_graph.to_record())

        assert service.bind_bot("wf_welcome", "bot_a").bound_bot_ids == ["bot_a"]
        assert service.bind_bot("wf_welcome", "bot_a").bound_bot_ids == ["bot_a"]
        assert service.unbind_bot("wf_welcome", "bot_a").bound_bot_ids == []
        assert service.unbind_bot("wf_welcome", "bot_a").bound_bot_ids == []

    def test_unbind_everywhere(self, service) -> None:
        first = service.create("A", bot_ids=["bot_a", "bot_b"])
        second = service.create("B", bot_ids=["bot_a"])
        service.create("C", bot_ids=["bot_b"])

        changed = service.unbind_bot_everywhere("bot_a")

        assert sorted(changed) == sorted([first.id, second.id])
        assert service.list_for_bot("bot_a") == []
        assert len(service.list_for_bot("bot_b")) == 2

    def test_binding_to_active_graph_checks_conflicts(self, service, store, bound_welcome, premium_graph) -> None:
        service.activate(bound_welcome)
        premium_graph.is_active = True
        store.save(premium_graph.to_record())

        with pytest.raises(BindingConflictError) as exc_info:
            service.bind_bot(premium_graph.id, "shop_bot")

        assert exc_info.value.bot_id == "shop_bot"
        assert exc_info.value.graph_id == bound_welcome


class TestActivation:
    def test_activate(self, service, bound_welcome) -> None:
        assert service.activate(bound_welcome).is_active
        assert service.active_graph_for_bot("shop_bot").id == bound_welcome

    def test_activation_conflict(self, service, store, bound_welcome, premium_graph) -> None:
        service.activate(bound_welcome)
        premium_graph.bound_bot_ids = ["shop_bot"]
        store.save(premium_graph.to_record())

        with pytest.raises(BindingConflictError):
            service.activate(premium_graph.id)
        assert not store.load(premium_graph.id).is_active

    def test_reactivation_is_allowed(self, service, bound_welcome) -> None:
        service.activate(bound_welcome)
        assert service.activate(bound_welcome).is_active

    def test_invalid_graph_is_not_activated(self, service, store, premium_graph) -> None:
        premium_graph.remove_connection("c3")
        store.save(premium_graph.to_record())

        with pytest.raises(ActivationError) as exc_info:
            service.activate(premium_graph.id)

        assert any("'false'" in violation for violation in exc_info.value.violations)

    def test_validation_can_be_disabled(self, store, test_settings, premium_graph) -> None:
        settings = test_settings.model_copy(update={"require_valid_on_activate": False})
        service = WorkflowService(store, settings=settings)
        premium_graph.remove_connection("c3")
        store.save(premium_graph.to_record())

        assert service.activate(premium_graph.id).is_active

    def test_deactivate(self, service, bound_welcome) -> None:
        service.activate(bound_welcome)
        service.deactivate(bound_welcome)
        assert service.active_graph_for_bot("shop_bot") is None


class TestHandleEvent:
    def test_runs_active_graph(self, service, bound_welcome) -> None:
        service.activate(bound_welcome)
        result = service.handle_event("shop_bot", _start())

        assert result.graph_id == bound_welcome
        assert [i.text for i in result.instructions] == ["Welcome!"]

    def test_inactive_graph_is_ignored(self, service, bound_welcome) -> None:
        result = service.handle_event("shop_bot", _start())
        assert result.instructions == []
        assert not result.matched

    def test_unknown_bot(self, service) -> None:
        assert service.handle_event("ghost_bot", _start()).instructions == []

    def test_unreadable_document_does_not_block_other_bots(self, tmp_path, test_settings, welcome_graph) -> None:
        store = JsonFileWorkflowStore(tmp_path)
        welcome_graph.bound_bot_ids = ["shop_bot"]
        welcome_graph.is_active = True
        store.save(welcome_graph.to_record())
        (tmp_path / "zzz_broken.json").write_text("{not json", encoding="utf-8")
        service = WorkflowService(store, settings=test_settings)

        result = service.handle_event("shop_bot", _start())

        assert [i.text for i in result.instructions] == ["Welcome!"]
        with pytest.raises(PersistenceError):
            service.get("zzz_broken")

    def test_context_reaches_conditions(self, service, store, premium_graph) -> None:
        premium_graph.bound_bot_ids = ["vip_bot"]
        store.save(premium_graph.to_record())
        service.activate(premium_graph.id)

        result = service.handle_event("vip_bot", _start(), {"user": {"isPremium": True}})
        assert [i.text for i in result.instructions] == ["Hi VIP"]
