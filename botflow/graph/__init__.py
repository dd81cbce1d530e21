"""Workflow graph model, editor session and interpreter.

Usage::

    from botflow.graph import ChatEvent, WorkflowGraph, WorkflowInterpreter

    graph = WorkflowGraph(name="welcome")
    start = graph.add_node("trigger-command", config={"command": "start"})
    greet = graph.add_node("action-message", config={"messageText": "Hello!"})
    graph.add_connection(start, None, greet)

    event = ChatEvent.from_message_text("/start", chat_id=1, user_id=1)
    result = WorkflowInterpreter().interpret(graph, event)
"""

from botflow.graph.catalog import (
    NodeCatalog,
    NodeCategory,
    NodeDescriptor,
    OutputPort,
    get_default_catalog,
)
from botflow.graph.events import ChatEvent, EventKind
from botflow.graph.expressions import ExpressionEvaluator, JinjaExpressionEvaluator
from botflow.graph.instructions import Instruction, SendMessage, Wait
from botflow.graph.interpreter import (
    ExecutionResult,
    WalkDiagnostic,
    WalkResult,
    WalkStatus,
    WorkflowInterpreter,
    interpret,
)
from botflow.graph.model import WorkflowConnection, WorkflowGraph, WorkflowNode
from botflow.graph.session import GraphEditorSession
from botflow.graph.validator import GraphViolation, Severity, validate_graph

__all__ = [
    # Catalog
    "NodeCatalog",
    "NodeCategory",
    "NodeDescriptor",
    "OutputPort",
    "get_default_catalog",
    # Model
    "WorkflowGraph",
    "WorkflowNode",
    "WorkflowConnection",
    "GraphViolation",
    "Severity",
    "validate_graph",
    "GraphEditorSession",
    # Execution
    "ChatEvent",
    "EventKind",
    "ExpressionEvaluator",
    "JinjaExpressionEvaluator",
    "Instruction",
    "SendMessage",
    "Wait",
    "ExecutionResult",
    "WalkDiagnostic",
    "WalkResult",
    "WalkStatus",
    "WorkflowInterpreter",
    "interpret",
]
