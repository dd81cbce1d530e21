"""Workflow execution interpreter.

Decides what a bot does in response to one inbound chat event. The
interpreter is a pure function of ``(graph, event, context)``: it
performs no I/O and returns an ordered instruction stream plus a
per-trigger walk report.

Each matched trigger starts a walk that moves
``Matching -> Walking -> Completed | Aborted``:

- an unknown node kind (or a node whose stored config is invalid)
  aborts the walk and drops all of its instructions
- a failing condition expression stops that branch only
- reaching a node already on the current path stops that branch with
  ``cycle_detected``; a node finished by a sibling branch is not
  visited again
- problems in one walk never affect the other walks
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from botflow.exceptions import (
    ConditionEvaluationError,
    ConfigurationError,
    CycleDetectedError,
    ExecutionError,
    UnknownNodeTypeError,
)
from botflow.graph.catalog import FALSE_PORT, TRUE_PORT, NodeCategory
from botflow.graph.events import ChatEvent, EventKind, normalize_command
from botflow.graph.expressions import ExpressionEvaluator, JinjaExpressionEvaluator
from botflow.graph.instructions import Instruction, SendMessage, Wait
from botflow.graph.model import WorkflowConnection, WorkflowGraph, WorkflowNode
from botflow.schema.nodes import (
    CallbackTriggerConfig,
    CommandTriggerConfig,
    DelayActionConfig,
    IfConditionConfig,
    MatchType,
    MessageActionConfig,
    NodeConfigBase,
    TextTriggerConfig,
)
from botflow.settings import Settings, get_settings

logger = logging.getLogger(__name__)

MATCH_POLICIES = ("all", "first")


class WalkStatus(str, Enum):
    MATCHING = "matching"
    WALKING = "walking"
    COMPLETED = "completed"
    ABORTED = "aborted"


class WalkDiagnostic(BaseModel):
    """An execution error surfaced alongside the instructions."""

    code: str
    message: str
    node_id: str | None = None
    trigger_node_id: str
    correlation_id: str | None = None

    @classmethod
    def from_error(cls, error: ExecutionError, trigger_node_id: str) -> WalkDiagnostic:
        return cls(
            code=error.code,
            message=str(error),
            node_id=error.node_id,
            trigger_node_id=trigger_node_id,
            correlation_id=error.correlation_id,
        )


class WalkResult(BaseModel):
    """Outcome of one walk from a matched trigger."""

    trigger_node_id: str
    status: WalkStatus
    instructions: list[Instruction] = Field(default_factory=list)
    diagnostics: list[WalkDiagnostic] = Field(default_factory=list)


class ExecutionResult(BaseModel):
    """Everything the interpreter decided for one event."""

    graph_id: str
    walks: list[WalkResult] = Field(default_factory=list)

    @property
    def instructions(self) -> list[Instruction]:
        """Instructions of all walks, walk by walk in trigger order."""
        return [instruction for walk in self.walks for instruction in walk.instructions]

    @property
    def diagnostics(self) -> list[WalkDiagnostic]:
        return [diagnostic for walk in self.walks for diagnostic in walk.diagnostics]

    @property
    def matched(self) -> bool:
        return bool(self.walks)


# =============================================================================
# ACTION EMITTERS
# =============================================================================


def _emit_message(node_id: str, config: MessageActionConfig) -> Instruction:
    return SendMessage(
        node_id=node_id,
        text=config.message_text,
        file_id=config.file_id,
        message_type=config.message_type,
        buttons=config.buttons,
    )


def _emit_wait(node_id: str, config: DelayActionConfig) -> Instruction:
    return Wait(node_id=node_id, seconds=config.delay_seconds)


# Keyed by the exact config class, so each emitter receives its own config type
ACTION_EMITTERS: dict[type[NodeConfigBase], Callable[[str, Any], Instruction]] = {
    MessageActionConfig: _emit_message,
    DelayActionConfig: _emit_wait,
}


# =============================================================================
# TRIGGER MATCHING
# =============================================================================


def _match_pattern(pattern: str, value: str, match_type: MatchType, *, case_sensitive: bool = True) -> bool:
    if not case_sensitive:
        pattern, value = pattern.casefold(), value.casefold()
    if match_type == MatchType.EXACT:
        return value == pattern
    if match_type == MatchType.CONTAINS:
        return pattern in value
    if match_type == MatchType.STARTS_WITH:
        return value.startswith(pattern)
    if match_type == MatchType.REGEX:
        try:
            return re.search(pattern, value) is not None
        except re.error as exc:
            logger.warning("Invalid regex pattern %r in trigger: %s", pattern, exc)
            return False
    return False


def trigger_matches(node: WorkflowNode, event: ChatEvent) -> bool:
    """Whether a trigger node fires for an event."""
    config = node.config

    if isinstance(config, CommandTriggerConfig):
        if event.kind != EventKind.COMMAND or not event.command:
            return False
        wanted = normalize_command(config.command)
        if not wanted or normalize_command(event.command) != wanted:
            return False
        if config.start_param_prefix:
            return bool(event.args) and event.args[0].startswith(config.start_param_prefix)
        return True

    if isinstance(config, TextTriggerConfig):
        if event.kind != EventKind.TEXT or event.text is None or not config.text:
            return False
        return _match_pattern(config.text, event.text, config.match_type, case_sensitive=config.case_sensitive)

    if isinstance(config, CallbackTriggerConfig):
        if event.kind != EventKind.CALLBACK or event.callback_data is None:
            return False
        if not config.callback_data:
            return True
        return _match_pattern(config.callback_data, event.callback_data, config.match_type)

    return False


def _is_deep_link(node: WorkflowNode) -> bool:
    config = node.config
    return isinstance(config, CommandTriggerConfig) and bool(config.start_param_prefix)


def build_context(event: ChatEvent, context: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Namespace for condition expressions: caller data plus event, user and chat."""
    namespace: dict[str, Any] = dict(context or {})

    user = namespace.get("user")
    if user is None or isinstance(user, Mapping):
        namespace["user"] = {"id": event.user_id, **(user or {})}

    chat = namespace.get("chat")
    if chat is None or isinstance(chat, Mapping):
        namespace["chat"] = {"id": event.chat_id, **(chat or {})}

    namespace["event"] = event.to_context()
    return namespace


# =============================================================================
# INTERPRETER
# =============================================================================


class WorkflowInterpreter:
    """Matches triggers and walks a graph into an instruction stream."""

    def __init__(
        self,
        evaluator: ExpressionEvaluator | None = None,
        *,
        match_policy: str = "all",
    ) -> None:
        if match_policy not in MATCH_POLICIES:
            raise ConfigurationError(f"Unknown trigger match policy '{match_policy}'")
        self.evaluator = evaluator or JinjaExpressionEvaluator()
        self.match_policy = match_policy

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> WorkflowInterpreter:
        settings = settings or get_settings()
        return cls(
            JinjaExpressionEvaluator(strict_undefined=settings.condition_strict_undefined),
            match_policy=settings.trigger_match_policy,
        )

    def match_triggers(self, graph: WorkflowGraph, event: ChatEvent) -> list[WorkflowNode]:
        """Matched trigger nodes in priority order.

        Deep-link command triggers (with a ``startParamPrefix``) are tried
        before every other trigger; ties keep declaration order. Once a
        deep link for a command has matched, plain triggers for the same
        command are skipped, so ``/start ref_42`` never fires both.
        """
        matched: list[WorkflowNode] = []
        deep_linked: set[str] = set()
        for node in sorted(graph.triggers(), key=lambda n: not _is_deep_link(n)):
            config = node.config
            if (
                isinstance(config, CommandTriggerConfig)
                and not config.start_param_prefix
                and normalize_command(config.command) in deep_linked
            ):
                logger.debug("Trigger %s shadowed by a deep-link trigger for /%s", node.id, config.command)
                continue
            if not trigger_matches(node, event):
                continue
            logger.debug("Trigger %s (%s) matched %s event", node.id, node.type, event.kind.value)
            matched.append(node)
            if isinstance(config, CommandTriggerConfig) and config.start_param_prefix:
                deep_linked.add(normalize_command(config.command))
            if self.match_policy == "first":
                break
        return matched

    def interpret(
        self,
        graph: WorkflowGraph,
        event: ChatEvent,
        context: Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """Run every matched trigger's walk for one event.

        Returns:
            ExecutionResult; empty when no trigger matches.
        """
        namespace = build_context(event, context)
        walks = [self._walk(graph, root, namespace) for root in self.match_triggers(graph, event)]
        return ExecutionResult(graph_id=graph.id, walks=walks)

    def _walk(self, graph: WorkflowGraph, root: WorkflowNode, namespace: Mapping[str, Any]) -> WalkResult:
        instructions: list[Instruction] = []
        diagnostics: list[WalkDiagnostic] = []
        visited: set[str] = set()
        # Each frame carries the path that led to it for cycle detection
        stack: list[tuple[str, tuple[str, ...]]] = [(root.id, ())]

        try:
            while stack:
                node_id, path = stack.pop()
                if node_id in path:
                    error = CycleDetectedError(
                        f"Node '{node_id}' revisited via {' -> '.join(path)}",
                        node_id=node_id,
                    )
                    diagnostics.append(WalkDiagnostic.from_error(error, root.id))
                    continue
                if node_id in visited:
                    logger.debug("Node %s already visited in this walk, skipping", node_id)
                    continue
                visited.add(node_id)

                node = graph.nodes[node_id]
                try:
                    next_connections = self._visit(graph, node, namespace, instructions)
                except ConditionEvaluationError as exc:
                    exc.node_id = node.id
                    logger.warning("Condition %s failed, branch not taken: %s", node.id, exc)
                    diagnostics.append(WalkDiagnostic.from_error(exc, root.id))
                    continue

                next_path = (*path, node_id)
                for conn in reversed(next_connections):
                    if conn.target_node_id not in graph.nodes:
                        error = ExecutionError(
                            f"Connection '{conn.id}' points to missing node '{conn.target_node_id}'",
                            node_id=node_id,
                            code="dangling_connection",
                        )
                        diagnostics.append(WalkDiagnostic.from_error(error, root.id))
                        continue
                    stack.append((conn.target_node_id, next_path))

        except ExecutionError as exc:
            logger.warning("Walk from trigger %s aborted: %s", root.id, exc)
            diagnostics.append(WalkDiagnostic.from_error(exc, root.id))
            return WalkResult(
                trigger_node_id=root.id,
                status=WalkStatus.ABORTED,
                diagnostics=diagnostics,
            )

        return WalkResult(
            trigger_node_id=root.id,
            status=WalkStatus.COMPLETED,
            instructions=instructions,
            diagnostics=diagnostics,
        )

    def _visit(
        self,
        graph: WorkflowGraph,
        node: WorkflowNode,
        namespace: Mapping[str, Any],
        instructions: list[Instruction],
    ) -> list[WorkflowConnection]:
        """Apply one node and return the connections to follow."""
        category = graph.category_of(node)
        if category is None:
            raise UnknownNodeTypeError(node.type, node_id=node.id)
        if node.config_errors:
            raise ExecutionError(
                f"Node '{node.id}' has an invalid config: {'; '.join(node.config_errors)}",
                node_id=node.id,
                code="invalid_config",
            )

        outgoing = graph.outgoing(node.id)

        if category == NodeCategory.CONDITION:
            config = node.config
            if not isinstance(config, IfConditionConfig):
                raise UnknownNodeTypeError(node.type, node_id=node.id)
            port = TRUE_PORT if self.evaluator.evaluate(config.expression, namespace) else FALSE_PORT
            branch = [conn for conn in outgoing if graph.source_port_name(conn) == port]
            if len(branch) > 1:
                logger.warning("Condition %s has %d '%s' connections, following the first", node.id, len(branch), port)
            return branch[:1]

        if category == NodeCategory.ACTION:
            emitter = ACTION_EMITTERS.get(type(node.config))
            if emitter is None:
                raise UnknownNodeTypeError(node.type, node_id=node.id)
            instructions.append(emitter(node.id, node.config))

        return outgoing


def interpret(
    graph: WorkflowGraph,
    event: ChatEvent,
    context: Mapping[str, Any] | None = None,
) -> ExecutionResult:
    """Interpret one event with a default interpreter built from settings."""
    return WorkflowInterpreter.from_settings().interpret(graph, event, context)
