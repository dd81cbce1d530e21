"""Condition node config models."""

from __future__ import annotations

from pydantic import Field

from botflow.schema.nodes.common import NodeConfigBase


class IfConditionConfig(NodeConfigBase):
    """Binary branch on a boolean expression (``user.isPremium``)."""

    expression: str = Field(default="", description="Predicate evaluated against the event context")


CONDITION_CONFIG_MAP: dict[str, type[NodeConfigBase]] = {
    "condition-if": IfConditionConfig,
}
