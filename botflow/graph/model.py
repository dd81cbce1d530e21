"""Workflow graph model.

Nodes and connections live in two arenas keyed by stable ids, so edits
are dictionary operations and cycles never turn into ownership cycles.
Every mutation enforces the structural invariants:

- connection endpoints name existing nodes and real ports
- trigger nodes take no incoming connections
- condition ports (``true`` / ``false``) carry at most one connection

``validate()`` is a separate read-only pass that reports everything the
mutation API cannot rule out on its own (missing branches, unreachable
actions, cycles) plus problems in graphs loaded from storage.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from botflow.exceptions import (
    GraphError,
    InvalidEndpointError,
    NodeConfigError,
    NodeNotFoundError,
    PortConflictError,
)
from botflow.graph.catalog import NodeCatalog, NodeCategory, get_default_catalog
from botflow.schema.graph import ConnectionRecord, GraphRecord, NodeRecord
from botflow.schema.nodes import GenericNodeConfig, NodeConfigBase, Position

if TYPE_CHECKING:
    from botflow.graph.validator import GraphViolation

logger = logging.getLogger(__name__)


def new_id(prefix: str) -> str:
    """Generate an opaque id such as ``node_3f2a9c0d1b4e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class WorkflowNode:
    """A node in the arena.

    ``config_errors`` is only set for nodes loaded leniently from storage
    whose config failed its kind's schema.
    """

    id: str
    type: str
    position: Position
    config: NodeConfigBase
    config_errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkflowConnection:
    """A directed connection in the arena."""

    id: str
    source_node_id: str
    target_node_id: str
    source_handle: str | None = None
    target_handle: str | None = None


def _coerce_position(position: Position | dict[str, float] | None) -> Position:
    if position is None:
        return Position()
    if isinstance(position, Position):
        return position
    return Position.model_validate(position)


def dump_config(config: NodeConfigBase) -> dict[str, Any]:
    """Serialize a typed config back to its wire keys, set fields only."""
    return config.model_dump(mode="json", by_alias=True, exclude_unset=True)


class WorkflowGraph:
    """Mutable workflow graph with invariant-checked mutations."""

    def __init__(
        self,
        graph_id: str | None = None,
        name: str = "",
        *,
        description: str | None = None,
        is_active: bool = False,
        bound_bot_ids: list[str] | None = None,
        catalog: NodeCatalog | None = None,
    ) -> None:
        self.id = graph_id or new_id("wf")
        self.name = name
        self.description = description
        self.is_active = is_active
        self.bound_bot_ids: list[str] = list(dict.fromkeys(bound_bot_ids or []))
        self.catalog = catalog or get_default_catalog()
        self.nodes: dict[str, WorkflowNode] = {}
        self.connections: dict[str, WorkflowConnection] = {}

    def __repr__(self) -> str:
        return (
            f"WorkflowGraph(id={self.id!r}, name={self.name!r}, "
            f"nodes={len(self.nodes)}, connections={len(self.connections)})"
        )

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def add_node(
        self,
        node_type: str,
        position: Position | dict[str, float] | None = None,
        config: dict[str, Any] | None = None,
        *,
        node_id: str | None = None,
    ) -> str:
        """Add a node and return its id.

        Unknown kinds are accepted with their raw config; the interpreter
        refuses to walk through them.

        Raises:
            NodeConfigError: If the config does not satisfy the kind's schema.
            GraphError: If an explicit node_id is already taken.
        """
        if node_id is not None and node_id in self.nodes:
            raise GraphError(f"Duplicate node ID '{node_id}'")
        typed = self.catalog.parse_config(node_type, config)
        nid = node_id or self._fresh_id("node", self.nodes)
        self.nodes[nid] = WorkflowNode(
            id=nid,
            type=node_type,
            position=_coerce_position(position),
            config=typed,
        )
        return nid

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every connection touching it. No-op if absent."""
        if self.nodes.pop(node_id, None) is None:
            return
        dangling = [
            cid
            for cid, conn in self.connections.items()
            if node_id in (conn.source_node_id, conn.target_node_id)
        ]
        for cid in dangling:
            del self.connections[cid]
        logger.debug("Removed node %s and %d connections", node_id, len(dangling))

    def move_node(self, node_id: str, position: Position | dict[str, float]) -> None:
        """Set a node's editor position.

        Raises:
            NodeNotFoundError: If the node does not exist.
        """
        node = self.get_node(node_id)
        self.nodes[node_id] = replace(node, position=_coerce_position(position))

    def patch_node_config(self, node_id: str, patch: dict[str, Any]) -> None:
        """Merge ``patch`` into a node's config and revalidate.

        Patch keys may use any accepted alias (``text`` for ``messageText``).

        Raises:
            NodeNotFoundError: If the node does not exist.
            NodeConfigError: If the merged config is invalid; the node is unchanged.
        """
        node = self.get_node(node_id)
        model = type(node.config)
        try:
            normalized = dump_config(model.model_validate(patch))
        except PydanticValidationError as exc:
            raise NodeConfigError(
                f"Invalid config patch for '{node.type}': {exc}",
                node_type=node.type,
            ) from exc
        merged = {**dump_config(node.config), **normalized}
        typed = self.catalog.parse_config(node.type, merged)
        self.nodes[node_id] = replace(node, config=typed, config_errors=())

    def get_node(self, node_id: str) -> WorkflowNode:
        """Return a node by id.

        Raises:
            NodeNotFoundError: If the node does not exist.
        """
        node = self.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def category_of(self, node: WorkflowNode) -> NodeCategory | None:
        """Catalog category of a node, or None for unknown kinds."""
        descriptor = self.catalog.get(node.type)
        return descriptor.category if descriptor else None

    def triggers(self) -> list[WorkflowNode]:
        """Trigger nodes in declaration order."""
        return [node for node in self.nodes.values() if self.category_of(node) == NodeCategory.TRIGGER]

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def add_connection(
        self,
        source_node_id: str,
        source_port: str | None,
        target_node_id: str,
        target_port: str | None = None,
        *,
        connection_id: str | None = None,
    ) -> str:
        """Connect two nodes and return the connection id.

        Raises:
            InvalidEndpointError: If a node is missing, the target is a
                trigger, or a port does not exist on the node's kind.
            PortConflictError: If the source port forbids fan-out and is
                already wired, or the same connection already exists.
            GraphError: If an explicit connection_id is already taken.
        """
        if connection_id is not None and connection_id in self.connections:
            raise GraphError(f"Duplicate connection ID '{connection_id}'")
        for ref in (source_node_id, target_node_id):
            if ref not in self.nodes:
                raise InvalidEndpointError(f"Connection references missing node '{ref}'", node_id=ref)

        source = self.nodes[source_node_id]
        target = self.nodes[target_node_id]
        port = self.catalog.resolve_output_port(source.type, source_port, node_id=source_node_id)
        self.catalog.resolve_input_port(target.type, target_port, node_id=target_node_id)

        for existing in self.outgoing(source_node_id):
            if self.source_port_name(existing) != port.name:
                continue
            if existing.target_node_id == target_node_id:
                raise PortConflictError(
                    f"Port '{port.name}' of node '{source_node_id}' is already connected to '{target_node_id}'",
                    node_id=source_node_id,
                    port=port.name,
                )
            if not port.fan_out:
                raise PortConflictError(
                    f"Port '{port.name}' of node '{source_node_id}' already has an outgoing connection",
                    node_id=source_node_id,
                    port=port.name,
                )

        cid = connection_id or self._fresh_id("conn", self.connections)
        self.connections[cid] = WorkflowConnection(
            id=cid,
            source_node_id=source_node_id,
            target_node_id=target_node_id,
            source_handle=source_port,
            target_handle=target_port,
        )
        return cid

    def remove_connection(self, connection_id: str) -> None:
        """Remove a connection. No-op if absent."""
        self.connections.pop(connection_id, None)

    def outgoing(self, node_id: str) -> list[WorkflowConnection]:
        """Connections leaving a node, in declaration order."""
        return [conn for conn in self.connections.values() if conn.source_node_id == node_id]

    def incoming(self, node_id: str) -> list[WorkflowConnection]:
        """Connections entering a node, in declaration order."""
        return [conn for conn in self.connections.values() if conn.target_node_id == node_id]

    def source_port_name(self, conn: WorkflowConnection) -> str | None:
        """Resolved output port of a connection, or None if the handle is invalid."""
        source = self.nodes.get(conn.source_node_id)
        if source is None:
            return None
        try:
            return self.catalog.resolve_output_port(source.type, conn.source_handle).name
        except InvalidEndpointError:
            return None

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> list[GraphViolation]:
        """Report structural problems without raising."""
        from botflow.graph.validator import validate_graph

        return validate_graph(self)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_record(self) -> GraphRecord:
        """Snapshot the graph as a serializable record."""
        return GraphRecord(
            id=self.id,
            name=self.name,
            description=self.description,
            is_active=self.is_active,
            bound_bot_ids=list(self.bound_bot_ids),
            nodes=[
                NodeRecord(
                    id=node.id,
                    type=node.type,
                    position=node.position.model_copy(),
                    config=dump_config(node.config),
                )
                for node in self.nodes.values()
            ],
            connections=[
                ConnectionRecord(
                    id=conn.id,
                    source_node_id=conn.source_node_id,
                    target_node_id=conn.target_node_id,
                    source_handle=conn.source_handle,
                    target_handle=conn.target_handle,
                )
                for conn in self.connections.values()
            ],
        )

    @classmethod
    def from_record(
        cls,
        record: GraphRecord,
        *,
        catalog: NodeCatalog | None = None,
        strict: bool = False,
    ) -> WorkflowGraph:
        """Rebuild a graph from a record.

        With ``strict=True`` every node and connection goes through the
        mutation API, so the first invariant violation raises. Otherwise the
        record is loaded as-is and ``validate()`` reports its problems.
        """
        graph = cls(
            record.id,
            record.name,
            description=record.description,
            is_active=record.is_active,
            bound_bot_ids=record.bound_bot_ids,
            catalog=catalog,
        )
        if strict:
            for node_rec in record.nodes:
                graph.add_node(node_rec.type, node_rec.position, node_rec.config, node_id=node_rec.id)
            for conn_rec in record.connections:
                graph.add_connection(
                    conn_rec.source_node_id,
                    conn_rec.source_handle,
                    conn_rec.target_node_id,
                    conn_rec.target_handle,
                    connection_id=conn_rec.id,
                )
            return graph

        for node_rec in record.nodes:
            graph.nodes[node_rec.id] = graph._load_node(node_rec)
        for conn_rec in record.connections:
            cid = conn_rec.id or graph._fresh_id("conn", graph.connections)
            graph.connections[cid] = WorkflowConnection(
                id=cid,
                source_node_id=conn_rec.source_node_id,
                target_node_id=conn_rec.target_node_id,
                source_handle=conn_rec.source_handle,
                target_handle=conn_rec.target_handle,
            )
        return graph

    def copy(self) -> WorkflowGraph:
        """Independent copy; nodes and connections are immutable so arenas are shallow-copied."""
        clone = WorkflowGraph(
            self.id,
            self.name,
            description=self.description,
            is_active=self.is_active,
            bound_bot_ids=self.bound_bot_ids,
            catalog=self.catalog,
        )
        clone.nodes = dict(self.nodes)
        clone.connections = dict(self.connections)
        return clone

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _load_node(self, node_rec: NodeRecord) -> WorkflowNode:
        try:
            typed = self.catalog.parse_config(node_rec.type, node_rec.config)
            errors: tuple[str, ...] = ()
        except NodeConfigError as exc:
            logger.warning("Node %s loaded with invalid config: %s", node_rec.id, exc)
            typed = GenericNodeConfig.model_validate(node_rec.config)
            errors = tuple(exc.errors) or (str(exc),)
        return WorkflowNode(
            id=node_rec.id,
            type=node_rec.type,
            position=node_rec.position.model_copy(),
            config=typed,
            config_errors=errors,
        )

    @staticmethod
    def _fresh_id(prefix: str, arena: dict[str, Any]) -> str:
        while True:
            candidate = new_id(prefix)
            if candidate not in arena:
                return candidate
