"""Shared test fixtures for botflow.

Provides settings, the default catalog, an in-memory store and a few
ready-made graphs used across the unit tests.
"""

from collections.abc import Generator

import pytest

from botflow.graph.catalog import NodeCatalog, get_default_catalog
from botflow.graph.model import WorkflowGraph
from botflow.services.store import InMemoryWorkflowStore
from botflow.settings import Settings, get_settings

# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture(autouse=True)
def _clear_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep BOTFLOW_* variables from the developer's shell out of tests."""
    import os

    for key in list(os.environ):
        if key.startswith("BOTFLOW_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        environment="testing",
        debug=True,
        store_path=tmp_path / "workflows",
        max_delay_seconds=5.0,
    )


# =============================================================================
# GRAPHS
# =============================================================================


@pytest.fixture
def catalog() -> NodeCatalog:
    return get_default_catalog()


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def welcome_graph() -> WorkflowGraph:
    """/start -> "Welcome!"."""
    graph = WorkflowGraph("wf_welcome", "Welcome")
    graph.add_node("trigger-command", config={"command": "start"}, node_id="start")
    graph.add_node("action-message", config={"messageText": "Welcome!"}, node_id="greet")
    graph.add_connection("start", None, "greet", connection_id="c1")
    return graph


@pytest.fixture
def premium_graph() -> WorkflowGraph:
    """/start -> if user.isPremium -> "Hi VIP" / "Hi"."""
    graph = WorkflowGraph("wf_premium", "Premium greeting")
    graph.add_node("trigger-command", config={"command": "start"}, node_id="start")
    graph.add_node("condition-if", config={"expression": "user.isPremium"}, node_id="check")
    graph.add_node("action-message", config={"messageText": "Hi VIP"}, node_id="vip")
    graph.add_node("action-message", config={"messageText": "Hi"}, node_id="regular")
    graph.add_connection("start", None, "check", connection_id="c1")
    graph.add_connection("check", "true", "vip", connection_id="c2")
    graph.add_connection("check", "false", "regular", connection_id="c3")
    return graph
