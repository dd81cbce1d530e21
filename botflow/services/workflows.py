"""Workflow service: graph lifecycle, bot bindings and event dispatch.

Sits between the bot runtime and the store. A bot is governed by at most
one active graph; ``handle_event`` loads that graph read-only and runs
the interpreter over it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from botflow.exceptions import ActivationError, BindingConflictError
from botflow.graph.catalog import NodeCatalog, get_default_catalog
from botflow.graph.events import ChatEvent
from botflow.graph.interpreter import ExecutionResult, WorkflowInterpreter
from botflow.graph.model import WorkflowGraph, new_id
from botflow.graph.session import GraphEditorSession
from botflow.schema.graph import GraphRecord
from botflow.services.store import WorkflowStore
from botflow.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class WorkflowService:
    """Manages stored workflow graphs for a set of bots.

    Args:
        store: Persistence adapter.
        catalog: Node catalog; defaults to the built-in kinds.
        interpreter: Interpreter used by ``handle_event``; built from
            settings when omitted.
        settings: Application settings.
    """

    def __init__(
        self,
        store: WorkflowStore,
        catalog: NodeCatalog | None = None,
        interpreter: WorkflowInterpreter | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.catalog = catalog or get_default_catalog()
        self.interpreter = interpreter or WorkflowInterpreter.from_settings(self.settings)

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def create(
        self,
        name: str,
        description: str | None = None,
        bot_ids: list[str] | None = None,
    ) -> GraphRecord:
        """Create and store an empty, inactive graph."""
        record = GraphRecord(
            id=new_id("wf"),
            name=name,
            description=description,
            bound_bot_ids=list(dict.fromkeys(bot_ids or [])),
        )
        self.store.save(record)
        logger.info("Created workflow graph %s (%s)", record.id, name)
        return record

    def get(self, graph_id: str) -> GraphRecord:
        """Raises GraphNotFoundError for unknown ids."""
        return self.store.load(graph_id)

    def list_all(self) -> list[GraphRecord]:
        return self.store.list_all()

    def list_for_bot(self, bot_id: str) -> list[GraphRecord]:
        return [record for record in self.store.list_all() if bot_id in record.bound_bot_ids]

    def save(self, record: GraphRecord) -> GraphRecord:
        """Store a full record, creating it or replacing a stored one.

        The record must load through the mutation API, and an active record
        must pass the activation checks before anything is written.

        Raises:
            GraphError: If the record violates a structural rule.
            ActivationError: If the record is active and has errors.
            BindingConflictError: If the record is active and one of its bots
                already has another active graph.
        """
        graph = WorkflowGraph.from_record(record, catalog=self.catalog, strict=True)
        self._check_if_active(graph)
        self.store.save(record)
        logger.info("Saved workflow graph %s (active=%s)", record.id, record.is_active)
        return record

    def update(self, record: GraphRecord) -> GraphRecord:
        """Replace a stored graph with ``record``.

        Same checks as ``save``; an active graph stays active only while it
        still passes them.

        Raises:
            GraphNotFoundError: If no graph is stored under the record's id.
        """
        self.store.load(record.id)
        return self.save(record)

    def delete(self, graph_id: str) -> None:
        """Delete a graph, unbinding it from every bot first."""
        record = self.store.load(graph_id)
        if record.bound_bot_ids or record.is_active:
            self.store.save(record.model_copy(update={"bound_bot_ids": [], "is_active": False}))
            logger.info("Unbound workflow graph %s from %s", graph_id, ", ".join(record.bound_bot_ids) or "no bots")
        self.store.delete(graph_id)
        logger.info("Deleted workflow graph %s", graph_id)

    def open_session(self, graph_id: str) -> GraphEditorSession:
        """Open an editor session on a stored graph.

        Saving from the session re-runs the activation checks while the
        graph is active.
        """
        return GraphEditorSession.open(
            self.store,
            graph_id,
            catalog=self.catalog,
            save_guard=self._check_if_active,
        )

    # -------------------------------------------------------------------------
    # Bot bindings
    # -------------------------------------------------------------------------

    def bind_bot(self, graph_id: str, bot_id: str) -> GraphRecord:
        """Bind a bot to a graph.

        Raises:
            BindingConflictError: If the graph is active and the bot already
                has another active graph.
        """
        record = self.store.load(graph_id)
        if bot_id in record.bound_bot_ids:
            return record
        if record.is_active:
            self._ensure_bot_free(bot_id, graph_id)
        updated = record.model_copy(update={"bound_bot_ids": [*record.bound_bot_ids, bot_id]})
        self.store.save(updated)
        return updated

    def unbind_bot(self, graph_id: str, bot_id: str) -> GraphRecord:
        record = self.store.load(graph_id)
        if bot_id not in record.bound_bot_ids:
            return record
        updated = record.model_copy(
            update={"bound_bot_ids": [b for b in record.bound_bot_ids if b != bot_id]},
        )
        self.store.save(updated)
        return updated

    def unbind_bot_everywhere(self, bot_id: str) -> list[str]:
        """Remove a bot from every graph, e.g. when the bot is deleted.

        Returns:
            Ids of the graphs that were updated.
        """
        changed = []
        for record in self.list_for_bot(bot_id):
            self.unbind_bot(record.id, bot_id)
            changed.append(record.id)
        if changed:
            logger.info("Unbound bot %s from %d workflow graphs", bot_id, len(changed))
        return changed

    # -------------------------------------------------------------------------
    # Activation
    # -------------------------------------------------------------------------

    def activate(self, graph_id: str) -> GraphRecord:
        """Mark a graph active for all of its bound bots.

        Raises:
            ActivationError: If validation reports errors and
                ``require_valid_on_activate`` is set.
            BindingConflictError: If a bound bot already has another active graph.
        """
        record = self.store.load(graph_id)
        graph = WorkflowGraph.from_record(record, catalog=self.catalog)
        self._check_activation(graph)
        updated = record.model_copy(update={"is_active": True})
        self.store.save(updated)
        logger.info("Activated workflow graph %s", graph_id)
        return updated

    def deactivate(self, graph_id: str) -> GraphRecord:
        record = self.store.load(graph_id)
        updated = record.model_copy(update={"is_active": False})
        self.store.save(updated)
        logger.info("Deactivated workflow graph %s", graph_id)
        return updated

    def active_graph_for_bot(self, bot_id: str) -> GraphRecord | None:
        """The active graph bound to a bot.

        Unreadable documents are logged and skipped by the store so one
        corrupt graph does not silence every other bot.
        """
        for record in self.store.list_all(skip_unreadable=True):
            if record.is_active and bot_id in record.bound_bot_ids:
                return record
        return None

    def _check_if_active(self, graph: WorkflowGraph) -> None:
        if graph.is_active:
            self._check_activation(graph)

    def _check_activation(self, graph: WorkflowGraph) -> None:
        if self.settings.require_valid_on_activate:
            errors = [v for v in graph.validate() if v.is_error]
            if errors:
                raise ActivationError(
                    f"Workflow graph '{graph.id}' has {len(errors)} validation error(s)",
                    violations=[f"{v.path}: {v.message}" for v in errors],
                )
        for bot_id in graph.bound_bot_ids:
            self._ensure_bot_free(bot_id, graph.id)

    def _ensure_bot_free(self, bot_id: str, graph_id: str) -> None:
        current = self.active_graph_for_bot(bot_id)
        if current is not None and current.id != graph_id:
            raise BindingConflictError(
                f"Bot '{bot_id}' is already governed by active workflow graph '{current.id}'",
                bot_id=bot_id,
                graph_id=current.id,
            )

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def handle_event(
        self,
        bot_id: str,
        event: ChatEvent,
        context: Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """Interpret an event with the bot's active graph.

        Returns an empty result when the bot has no active graph.
        """
        record = self.active_graph_for_bot(bot_id)
        if record is None:
            logger.debug("Bot %s has no active workflow graph", bot_id)
            return ExecutionResult(graph_id="")
        graph = WorkflowGraph.from_record(record, catalog=self.catalog)
        result = self.interpreter.interpret(graph, event, context)
        for diagnostic in result.diagnostics:
            logger.warning(
                "Workflow %s diagnostic %s at node %s: %s",
                graph.id,
                diagnostic.code,
                diagnostic.node_id,
                diagnostic.message,
            )
        return result
