"""Serialized workflow graph document.

This is the record exchanged with the persistence adapter and accepted
by ``validate_document``. Keys are camelCase on the wire; snake_case
names are accepted when building records in code.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from botflow.schema.nodes.common import Position


class NodeRecord(BaseModel):
    """A node as stored: kind, editor position and raw config."""

    id: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50, description="Node kind from the catalog")
    position: Position = Field(default_factory=Position)
    config: dict[str, Any] = Field(default_factory=dict)


class ConnectionRecord(BaseModel):
    """A directed connection between two nodes.

    ``id`` may be omitted by older documents; loaders assign one.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(default=None, max_length=100)
    source_node_id: str = Field(..., alias="sourceNodeId")
    target_node_id: str = Field(..., alias="targetNodeId")
    source_handle: str | None = Field(default=None, alias="sourceHandle")
    target_handle: str | None = Field(default=None, alias="targetHandle")


class GraphRecord(BaseModel):
    """Serialized form of a ``WorkflowGraph``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., max_length=255)
    description: str | None = None
    is_active: bool = Field(default=False, alias="isActive")
    bound_bot_ids: list[str] = Field(default_factory=list, alias="boundBotIds")
    nodes: list[NodeRecord] = Field(default_factory=list)
    connections: list[ConnectionRecord] = Field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> GraphRecord:
        """Build a record from a parsed JSON/YAML document."""
        return cls.model_validate(data)
