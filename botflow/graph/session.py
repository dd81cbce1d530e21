"""Graph editor session.

One working copy of a graph plus the UI-only selection. Every edit is
applied to a scratch copy and committed only if it succeeds, so a
rejected edit leaves the working copy exactly as it was. Each successful
edit returns an immutable ``GraphRecord`` snapshot for rendering.

Usage::

    session = GraphEditorSession.open(store, "wf_welcome")
    session.add_node("trigger-command", config={"command": "start"}, node_id="start")
    session.add_node("action-message", config={"messageText": "Hi"}, node_id="greet")
    session.connect("start", None, "greet")
    ...
    session.save()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from botflow.graph.catalog import NodeCatalog
from botflow.graph.model import WorkflowGraph
from botflow.schema.graph import GraphRecord
from botflow.schema.nodes import Position
from botflow.services.store import WorkflowStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GraphEditorSession:
    """Single-writer editing session over one workflow graph."""

    def __init__(
        self,
        graph: WorkflowGraph,
        store: WorkflowStore,
        *,
        save_guard: Callable[[WorkflowGraph], None] | None = None,
    ) -> None:
        self._graph = graph
        self.store = store
        self.save_guard = save_guard
        self.selected_node_id: str | None = None
        self.last_added_id: str | None = None
        self._dirty = False
        self._snapshot = graph.to_record()

    @classmethod
    def open(
        cls,
        store: WorkflowStore,
        graph_id: str,
        *,
        catalog: NodeCatalog | None = None,
        save_guard: Callable[[WorkflowGraph], None] | None = None,
    ) -> GraphEditorSession:
        """Load a stored graph for editing.

        The record is replayed through the mutation API, so a stored graph
        that breaks a structural rule is refused here.

        Raises:
            GraphNotFoundError: If the store has no such graph.
            GraphError: If the stored graph violates a structural rule.
        """
        record = store.load(graph_id)
        graph = WorkflowGraph.from_record(record, catalog=catalog, strict=True)
        return cls(graph, store, save_guard=save_guard)

    @classmethod
    def new(
        cls,
        store: WorkflowStore,
        name: str,
        *,
        description: str | None = None,
        catalog: NodeCatalog | None = None,
    ) -> GraphEditorSession:
        """Start editing an empty, unsaved graph."""
        session = cls(WorkflowGraph(name=name, description=description, catalog=catalog), store)
        session._dirty = True
        return session

    @property
    def graph_id(self) -> str:
        return self._graph.id

    @property
    def snapshot(self) -> GraphRecord:
        """Last committed state of the working copy."""
        return self._snapshot

    @property
    def is_dirty(self) -> bool:
        """Whether there are edits not yet saved."""
        return self._dirty

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def _apply(self, edit: Callable[[WorkflowGraph], T]) -> T:
        scratch = self._graph.copy()
        result = edit(scratch)
        self._graph = scratch
        self._snapshot = scratch.to_record()
        self._dirty = True
        return result

    def add_node(
        self,
        node_type: str,
        position: Position | dict[str, float] | None = None,
        config: dict[str, Any] | None = None,
        *,
        node_id: str | None = None,
    ) -> GraphRecord:
        """Add a node; its id is available as ``last_added_id``.

        Raises:
            NodeConfigError: If the config does not satisfy the kind's schema.
            GraphError: If an explicit node_id is already taken.
        """
        self.last_added_id = self._apply(lambda g: g.add_node(node_type, position, config, node_id=node_id))
        logger.debug("Added %s node %s to %s", node_type, self.last_added_id, self.graph_id)
        return self._snapshot

    def move_node(self, node_id: str, position: Position | dict[str, float]) -> GraphRecord:
        self._apply(lambda g: g.move_node(node_id, position))
        return self._snapshot

    def patch_node_config(self, node_id: str, patch: dict[str, Any]) -> GraphRecord:
        """Merge a partial config into a node.

        Raises:
            NodeNotFoundError: If the node does not exist.
            NodeConfigError: If the merged config is invalid.
        """
        self._apply(lambda g: g.patch_node_config(node_id, patch))
        return self._snapshot

    def connect(
        self,
        source_node_id: str,
        source_port: str | None,
        target_node_id: str,
        target_port: str | None = None,
        *,
        connection_id: str | None = None,
    ) -> GraphRecord:
        """Connect two nodes; the connection id is available as ``last_added_id``.

        Raises:
            InvalidEndpointError: If an endpoint or port is invalid.
            PortConflictError: If a condition port is already wired.
        """
        self.last_added_id = self._apply(
            lambda g: g.add_connection(
                source_node_id, source_port, target_node_id, target_port, connection_id=connection_id
            )
        )
        return self._snapshot

    def disconnect(self, connection_id: str) -> GraphRecord:
        self._apply(lambda g: g.remove_connection(connection_id))
        return self._snapshot

    def delete_node(self, node_id: str) -> GraphRecord:
        """Delete a node together with its connections."""
        self._apply(lambda g: g.remove_node(node_id))
        if self.selected_node_id == node_id:
            self.selected_node_id = None
        return self._snapshot

    def select(self, node_id: str | None) -> GraphRecord:
        """Select a node for the property panel, or clear with None.

        Raises:
            NodeNotFoundError: If the node does not exist.
        """
        if node_id is not None:
            self._graph.get_node(node_id)
        self.selected_node_id = node_id
        return self._snapshot

    def validate(self):
        """Structural report for the working copy."""
        return self._graph.validate()

    def working_graph(self) -> WorkflowGraph:
        """Independent copy of the working graph, e.g. for a dry run."""
        return self._graph.copy()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save(self) -> GraphRecord:
        """Hand the current snapshot to the store.

        The save guard, when set, sees the working graph first and may
        refuse it by raising.

        Raises:
            PersistenceError: Propagated unchanged from the store; the
                session stays dirty.
            ActivationError: From the save guard when an active graph no
                longer passes activation; nothing is written.
        """
        record = self._snapshot
        if self.save_guard is not None:
            self.save_guard(self._graph)
        self.store.save(record)
        self._dirty = False
        logger.info("Saved workflow graph %s (%d nodes)", record.id, len(record.nodes))
        return record
