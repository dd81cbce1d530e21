"""Structural validation of workflow graphs.

Validation never raises and never blocks editing; it is run before
activation and by document validation. Errors make a graph unfit to
activate, warnings describe dead or suspicious wiring.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel

from botflow.graph.catalog import FALSE_PORT, TRUE_PORT, NodeCategory
from botflow.schema.nodes import IfConditionConfig, MessageActionConfig, MessageType

if TYPE_CHECKING:
    from botflow.graph.model import WorkflowGraph


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class GraphViolation(BaseModel):
    """One structural problem found by ``validate_graph``."""

    code: str
    message: str
    severity: Severity = Severity.ERROR
    node_id: str | None = None
    connection_id: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    @property
    def path(self) -> str:
        if self.connection_id is not None:
            return f"connections[{self.connection_id}]"
        if self.node_id is not None:
            return f"nodes[{self.node_id}]"
        return ""

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


def validate_graph(graph: WorkflowGraph) -> list[GraphViolation]:
    """Check a graph's structure.

    Checks: dangling connections, unknown kinds, invalid configs, invalid
    ports, trigger wiring, condition branches, media files, reachability
    and cycles.

    Returns:
        List of violations (empty if the graph is clean).
    """
    violations: list[GraphViolation] = []
    violations.extend(_check_connections(graph))
    violations.extend(_check_nodes(graph))
    violations.extend(_check_reachability(graph))
    return violations


def _check_connections(graph: WorkflowGraph) -> list[GraphViolation]:
    violations: list[GraphViolation] = []
    for conn in graph.connections.values():
        missing = [ref for ref in (conn.source_node_id, conn.target_node_id) if ref not in graph.nodes]
        if missing:
            violations.append(
                GraphViolation(
                    code="dangling_connection",
                    message=f"Connection references undefined node(s): {', '.join(repr(m) for m in missing)}",
                    connection_id=conn.id,
                )
            )
            continue
        if graph.source_port_name(conn) is None:
            violations.append(
                GraphViolation(
                    code="invalid_port",
                    message=f"Source handle '{conn.source_handle}' is not an output of node '{conn.source_node_id}'",
                    connection_id=conn.id,
                )
            )
    return violations


def _check_nodes(graph: WorkflowGraph) -> list[GraphViolation]:
    violations: list[GraphViolation] = []

    for node in graph.nodes.values():
        category = graph.category_of(node)
        if category is None:
            violations.append(
                GraphViolation(
                    code="unknown_node_type",
                    message=f"Unknown node type '{node.type}'",
                    node_id=node.id,
                )
            )
            continue

        if node.config_errors:
            violations.append(
                GraphViolation(
                    code="invalid_config",
                    message=f"Invalid config: {'; '.join(node.config_errors)}",
                    node_id=node.id,
                )
            )

        outgoing = [conn for conn in graph.outgoing(node.id) if conn.target_node_id in graph.nodes]

        if category == NodeCategory.TRIGGER:
            if graph.incoming(node.id):
                violations.append(
                    GraphViolation(
                        code="trigger_has_incoming",
                        message="Trigger nodes cannot have incoming connections",
                        node_id=node.id,
                    )
                )
            if not outgoing:
                violations.append(
                    GraphViolation(
                        code="trigger_without_outgoing",
                        message="Trigger is not connected to anything",
                        severity=Severity.WARNING,
                        node_id=node.id,
                    )
                )

        elif category == NodeCategory.CONDITION:
            ports = [graph.source_port_name(conn) for conn in outgoing]
            for port in (TRUE_PORT, FALSE_PORT):
                count = ports.count(port)
                if count == 0:
                    violations.append(
                        GraphViolation(
                            code="condition_missing_branch",
                            message=f"Condition has no '{port}' branch",
                            node_id=node.id,
                        )
                    )
                elif count > 1:
                    violations.append(
                        GraphViolation(
                            code="duplicate_branch",
                            message=f"Condition has {count} connections on its '{port}' port",
                            node_id=node.id,
                        )
                    )
            if isinstance(node.config, IfConditionConfig) and not node.config.expression.strip():
                violations.append(
                    GraphViolation(
                        code="empty_expression",
                        message="Condition expression is empty",
                        node_id=node.id,
                    )
                )

        elif category == NodeCategory.ACTION:
            config = node.config
            if (
                isinstance(config, MessageActionConfig)
                and config.message_type != MessageType.TEXT
                and not config.file_id
            ):
                violations.append(
                    GraphViolation(
                        code="missing_media_file",
                        message=f"{config.message_type.value.capitalize()} message has no file attached",
                        severity=Severity.WARNING,
                        node_id=node.id,
                    )
                )

    return violations


def _check_reachability(graph: WorkflowGraph) -> list[GraphViolation]:
    violations: list[GraphViolation] = []
    if not graph.nodes:
        return violations

    adjacency: dict[str, list[str]] = {nid: [] for nid in graph.nodes}
    for conn in graph.connections.values():
        if conn.source_node_id in graph.nodes and conn.target_node_id in graph.nodes:
            adjacency[conn.source_node_id].append(conn.target_node_id)

    roots = [node.id for node in graph.triggers()]
    if not roots:
        violations.append(
            GraphViolation(
                code="no_trigger",
                message="Graph has no trigger node; it never runs",
                severity=Severity.WARNING,
            )
        )

    reached: set[str] = set(roots)
    queue = deque(roots)
    while queue:
        current = queue.popleft()
        for neighbor in adjacency[current]:
            if neighbor not in reached:
                reached.add(neighbor)
                queue.append(neighbor)

    for node in graph.nodes.values():
        category = graph.category_of(node)
        if category in (NodeCategory.ACTION, NodeCategory.CONDITION) and node.id not in reached:
            violations.append(
                GraphViolation(
                    code="unreachable_action",
                    message=f"Node '{node.id}' ({node.type}) is not reachable from any trigger",
                    severity=Severity.WARNING,
                    node_id=node.id,
                )
            )

    cycle_nodes = _detect_cycles(adjacency)
    if cycle_nodes:
        violations.append(
            GraphViolation(
                code="cycle",
                message=f"Cycle detected involving nodes: {', '.join(sorted(cycle_nodes))}",
                severity=Severity.WARNING,
            )
        )

    return violations


def _detect_cycles(adjacency: dict[str, list[str]]) -> set[str]:
    """Detect cycles using an iterative three-color DFS. Returns nodes on a back edge."""
    WHITE, GRAY, BLACK = 0, 1, 2
    color: dict[str, int] = dict.fromkeys(adjacency, WHITE)
    cycle_nodes: set[str] = set()

    for start in adjacency:
        if color[start] != WHITE:
            continue
        color[start] = GRAY
        stack: list[tuple[str, int]] = [(start, 0)]
        while stack:
            node, index = stack[-1]
            neighbors = adjacency[node]
            if index == len(neighbors):
                color[node] = BLACK
                stack.pop()
                continue
            stack[-1] = (node, index + 1)
            neighbor = neighbors[index]
            if color[neighbor] == GRAY:
                cycle_nodes.add(node)
                cycle_nodes.add(neighbor)
            elif color[neighbor] == WHITE:
                color[neighbor] = GRAY
                stack.append((neighbor, 0))

    return cycle_nodes
