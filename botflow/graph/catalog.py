"""Node catalog registry.

Registers the available node kinds with their ports and config model so
the graph model can constrain connections and the interpreter knows how
each kind branches.

``get_default_catalog()`` returns a catalog pre-populated with the
built-in trigger, condition and action kinds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from botflow.exceptions import InvalidEndpointError, NodeConfigError, UnknownNodeTypeError
from botflow.schema.nodes import (
    GenericNodeConfig,
    NodeConfigBase,
)
from botflow.schema.nodes.actions import DelayActionConfig, MessageActionConfig
from botflow.schema.nodes.conditions import IfConditionConfig
from botflow.schema.nodes.triggers import (
    CallbackTriggerConfig,
    CommandTriggerConfig,
    TextTriggerConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_INPUT = "in"
DEFAULT_OUTPUT = "out"
TRUE_PORT = "true"
FALSE_PORT = "false"


class NodeCategory(str, Enum):
    """Role a node kind plays in a walk."""

    TRIGGER = "trigger"
    CONDITION = "condition"
    ACTION = "action"


@dataclass(frozen=True)
class OutputPort:
    """An output port and whether it may feed more than one connection."""

    name: str
    fan_out: bool = True


@dataclass
class NodeDescriptor:
    """Metadata about a registered node kind."""

    type: str
    category: NodeCategory
    config_model: type[NodeConfigBase]
    input_ports: list[str] = field(default_factory=list)
    output_ports: list[OutputPort] = field(default_factory=list)
    description: str = ""

    @property
    def output_port_names(self) -> list[str]:
        return [port.name for port in self.output_ports]

    @property
    def config_schema(self) -> dict[str, Any]:
        """JSON Schema of the kind's config, for form rendering."""
        return self.config_model.model_json_schema()

    def output_port(self, name: str) -> OutputPort | None:
        for port in self.output_ports:
            if port.name == name:
                return port
        return None

    def to_dict(self) -> dict[str, Any]:
        """Wire form of the descriptor."""
        return {
            "type": self.type,
            "inputPorts": list(self.input_ports),
            "outputPorts": self.output_port_names,
            "configSchema": self.config_schema,
        }


class NodeCatalog:
    """Registry of available node kinds."""

    def __init__(self) -> None:
        self._entries: dict[str, NodeDescriptor] = {}

    def register(
        self,
        node_type: str,
        category: NodeCategory,
        config_model: type[NodeConfigBase],
        input_ports: list[str] | None = None,
        output_ports: list[OutputPort] | None = None,
        description: str = "",
    ) -> None:
        """Register a node kind.

        Args:
            node_type: Unique kind name used in serialized graphs (e.g. 'action-delay').
            category: Trigger, condition or action.
            config_model: Pydantic model for the kind's config.
            input_ports: Input port names (empty for triggers).
            output_ports: Output ports with their fan-out rule.
            description: Human-readable purpose.
        """
        self._entries[node_type] = NodeDescriptor(
            type=node_type,
            category=category,
            config_model=config_model,
            input_ports=input_ports or [],
            output_ports=output_ports or [],
            description=description,
        )

    def describe(self, node_type: str) -> NodeDescriptor:
        """Look up a node kind.

        Raises:
            UnknownNodeTypeError: If the kind is not registered.
        """
        entry = self._entries.get(node_type)
        if entry is None:
            raise UnknownNodeTypeError(node_type)
        return entry

    def get(self, node_type: str) -> NodeDescriptor | None:
        """Look up a node kind, returning None when unknown."""
        return self._entries.get(node_type)

    def list_all(self) -> list[NodeDescriptor]:
        """Return all registered descriptors."""
        return list(self._entries.values())

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._entries

    def config_model(self, node_type: str) -> type[NodeConfigBase] | None:
        entry = self._entries.get(node_type)
        return entry.config_model if entry else None

    def parse_config(self, node_type: str, raw: dict[str, Any] | None) -> NodeConfigBase:
        """Validate a raw config dict into the kind's typed config.

        Unknown kinds get a ``GenericNodeConfig`` holding the raw keys.

        Raises:
            NodeConfigError: If the config does not satisfy the kind's model.
        """
        model = self.config_model(node_type) or GenericNodeConfig
        try:
            return model.model_validate(raw or {})
        except PydanticValidationError as exc:
            details = [
                f"{'.'.join(str(part) for part in e['loc']) or '<root>'}: {e['msg']}"
                for e in exc.errors()
            ]
            raise NodeConfigError(
                f"Invalid config for '{node_type}': {'; '.join(details)}",
                node_type=node_type,
                errors=details,
            ) from exc

    def resolve_output_port(self, node_type: str, handle: str | None, *, node_id: str = "") -> OutputPort:
        """Map a connection's source handle to an output port.

        An absent handle selects the only output of single-output kinds.
        Unknown kinds accept any handle without fan-out limits.

        Raises:
            InvalidEndpointError: If the kind has no such output port.
        """
        entry = self._entries.get(node_type)
        if entry is None:
            return OutputPort(handle or DEFAULT_OUTPUT)
        if handle is None and len(entry.output_ports) == 1:
            return entry.output_ports[0]
        port = entry.output_port(handle) if handle is not None else None
        if port is None:
            available = ", ".join(entry.output_port_names) or "none"
            raise InvalidEndpointError(
                f"Node '{node_id}' ({node_type}) has no output port '{handle}'. Available: {available}",
                node_id=node_id,
                port=handle,
            )
        return port

    def resolve_input_port(self, node_type: str, handle: str | None, *, node_id: str = "") -> str:
        """Map a connection's target handle to an input port.

        Raises:
            InvalidEndpointError: If the kind accepts no incoming connection
                or has no such input port.
        """
        entry = self._entries.get(node_type)
        if entry is None:
            return handle or DEFAULT_INPUT
        if not entry.input_ports:
            raise InvalidEndpointError(
                f"Node '{node_id}' ({node_type}) does not accept incoming connections",
                node_id=node_id,
                port=handle,
            )
        if handle is None and len(entry.input_ports) == 1:
            return entry.input_ports[0]
        if handle not in entry.input_ports:
            raise InvalidEndpointError(
                f"Node '{node_id}' ({node_type}) has no input port '{handle}'",
                node_id=node_id,
                port=handle,
            )
        return handle


def build_default_catalog() -> NodeCatalog:
    """Build a catalog with all built-in node kinds."""
    catalog = NodeCatalog()
    single_out = [OutputPort(DEFAULT_OUTPUT, fan_out=True)]

    # Triggers
    catalog.register(
        node_type="trigger-command",
        category=NodeCategory.TRIGGER,
        config_model=CommandTriggerConfig,
        output_ports=single_out,
        description="Start a walk when the bot receives a command",
    )
    catalog.register(
        node_type="trigger-text",
        category=NodeCategory.TRIGGER,
        config_model=TextTriggerConfig,
        output_ports=single_out,
        description="Start a walk when a message text matches",
    )
    catalog.register(
        node_type="trigger-callback",
        category=NodeCategory.TRIGGER,
        config_model=CallbackTriggerConfig,
        output_ports=single_out,
        description="Start a walk when an inline button callback matches",
    )

    # Conditions
    catalog.register(
        node_type="condition-if",
        category=NodeCategory.CONDITION,
        config_model=IfConditionConfig,
        input_ports=[DEFAULT_INPUT],
        output_ports=[OutputPort(TRUE_PORT, fan_out=False), OutputPort(FALSE_PORT, fan_out=False)],
        description="Follow the true or false branch of an expression",
    )

    # Actions
    catalog.register(
        node_type="action-message",
        category=NodeCategory.ACTION,
        config_model=MessageActionConfig,
        input_ports=[DEFAULT_INPUT],
        output_ports=single_out,
        description="Send a text or media message",
    )
    catalog.register(
        node_type="action-delay",
        category=NodeCategory.ACTION,
        config_model=DelayActionConfig,
        input_ports=[DEFAULT_INPUT],
        output_ports=single_out,
        description="Wait before the following actions",
    )

    logger.debug("Built default node catalog with %d kinds", len(catalog.list_all()))
    return catalog


@lru_cache
def get_default_catalog() -> NodeCatalog:
    """Get the cached built-in catalog."""
    return build_default_catalog()
