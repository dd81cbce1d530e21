"""Workflow node config schemas.

Each node kind carries its own statically typed config model. The
``NODE_CONFIG_MAP`` keys are the node ``type`` strings used in
serialized graphs.

Usage::

    from botflow.schema.nodes import NODE_CONFIG_MAP

    config = NODE_CONFIG_MAP["action-message"].model_validate({"text": "hi"})
    assert config.message_text == "hi"
"""

from __future__ import annotations

from botflow.schema.nodes.actions import (
    ACTION_CONFIG_MAP,
    DelayActionConfig,
    MessageActionConfig,
)
from botflow.schema.nodes.common import (
    InlineButton,
    MatchType,
    MessageType,
    NodeConfigBase,
    Position,
)
from botflow.schema.nodes.conditions import CONDITION_CONFIG_MAP, IfConditionConfig
from botflow.schema.nodes.triggers import (
    TRIGGER_CONFIG_MAP,
    CallbackTriggerConfig,
    CommandTriggerConfig,
    TextTriggerConfig,
)


class GenericNodeConfig(NodeConfigBase):
    """Fallback for unrecognized node kinds.

    Keeps every key so persisted graphs with unknown kinds still load.
    """

    pass


NODE_CONFIG_MAP: dict[str, type[NodeConfigBase]] = {
    **TRIGGER_CONFIG_MAP,
    **CONDITION_CONFIG_MAP,
    **ACTION_CONFIG_MAP,
}

__all__ = [
    "NODE_CONFIG_MAP",
    "CallbackTriggerConfig",
    "CommandTriggerConfig",
    "DelayActionConfig",
    "GenericNodeConfig",
    "IfConditionConfig",
    "InlineButton",
    "MatchType",
    "MessageActionConfig",
    "MessageType",
    "NodeConfigBase",
    "Position",
    "TextTriggerConfig",
]
