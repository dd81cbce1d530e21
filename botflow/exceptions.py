"""botflow exception hierarchy.

Base exceptions for the graph model, the interpreter and the services,
with correlation ID support.

Usage:
    from botflow.exceptions import InvalidEndpointError, PortConflictError

    try:
        session.connect(source_id, "true", target_id)
    except PortConflictError as e:
        logger.warning("Port already wired", extra={"correlation_id": e.correlation_id})
"""

import uuid


class BotflowError(Exception):
    """Base exception for all botflow errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


# =============================================================================
# GRAPH MUTATION
# =============================================================================


class GraphError(BotflowError):
    """Structural errors rejected at mutation time."""

    pass


class NodeNotFoundError(GraphError):
    """An edit targets a node id that is not in the graph."""

    def __init__(self, node_id: str, **kwargs):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found", **kwargs)


class InvalidEndpointError(GraphError):
    """A connection endpoint names a missing node or a port the node lacks."""

    def __init__(
        self,
        message: str,
        *,
        node_id: str | None = None,
        port: str | None = None,
        **kwargs,
    ):
        self.node_id = node_id
        self.port = port
        super().__init__(message, **kwargs)


class PortConflictError(GraphError):
    """A source port that forbids fan-out already has an outgoing connection."""

    def __init__(self, message: str, *, node_id: str, port: str, **kwargs):
        self.node_id = node_id
        self.port = port
        super().__init__(message, **kwargs)


class NodeConfigError(GraphError):
    """A node config does not satisfy its kind's schema."""

    def __init__(self, message: str, *, node_type: str, errors: list[str] | None = None, **kwargs):
        self.node_type = node_type
        self.errors = errors or []
        super().__init__(message, **kwargs)


# =============================================================================
# EXECUTION
# =============================================================================


class ExecutionError(BotflowError):
    """Errors raised while walking a graph for one event.

    ``code`` names the diagnostic reported for the walk.
    """

    code = "execution_error"

    def __init__(self, message: str, *, node_id: str | None = None, code: str | None = None, **kwargs):
        self.node_id = node_id
        if code is not None:
            self.code = code
        super().__init__(message, **kwargs)


class UnknownNodeTypeError(ExecutionError):
    """A node kind is not registered in the catalog."""

    code = "unknown_node_type"

    def __init__(self, node_type: str, **kwargs):
        self.node_type = node_type
        super().__init__(f"Unknown node type '{node_type}'", **kwargs)


class ConditionEvaluationError(ExecutionError):
    """A condition expression could not be evaluated to a boolean."""

    code = "condition_evaluation_error"

    def __init__(self, message: str, *, expression: str = "", **kwargs):
        self.expression = expression
        super().__init__(message, **kwargs)


class CycleDetectedError(ExecutionError):
    """A walk reached a node already on its current path."""

    code = "cycle_detected"


# =============================================================================
# SERVICES
# =============================================================================


class PersistenceError(BotflowError):
    """Errors reported by a workflow store."""

    pass


class GraphNotFoundError(PersistenceError):
    """No graph is stored under the requested id."""

    def __init__(self, graph_id: str, **kwargs):
        self.graph_id = graph_id
        super().__init__(f"Workflow graph '{graph_id}' not found", **kwargs)


class ActivationError(BotflowError):
    """A graph with structural errors cannot be activated."""

    def __init__(self, message: str, *, violations: list[str] | None = None, **kwargs):
        self.violations = violations or []
        super().__init__(message, **kwargs)


class BindingConflictError(BotflowError):
    """A bot is already governed by another active graph."""

    def __init__(self, message: str, *, bot_id: str, graph_id: str, **kwargs):
        self.bot_id = bot_id
        self.graph_id = graph_id
        super().__init__(message, **kwargs)


class ActionExecutionError(BotflowError):
    """The bot client failed to carry out an instruction."""

    def __init__(self, message: str, *, index: int, **kwargs):
        self.index = index
        super().__init__(message, **kwargs)


class ConfigurationError(BotflowError):
    """Errors from application configuration."""

    pass
