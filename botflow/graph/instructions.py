"""Outbound instructions handed to the action executor.

An instruction stream is ordered: every instruction follows the ones
before it, including ``Wait``.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from botflow.schema.nodes import InlineButton, MessageType


class _InstructionBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    node_id: str | None = Field(default=None, alias="nodeId", description="Node that emitted it")


class SendMessage(_InstructionBase):
    """Send a text or media message to the event's chat."""

    kind: Literal["sendMessage"] = "sendMessage"
    text: str = ""
    file_id: str | None = Field(default=None, alias="fileId")
    message_type: MessageType = Field(default=MessageType.TEXT, alias="messageType")
    buttons: list[list[InlineButton]] = Field(default_factory=list)


class Wait(_InstructionBase):
    """Pause before the following instructions."""

    kind: Literal["wait"] = "wait"
    seconds: float = Field(..., ge=0.0)


Instruction = Annotated[SendMessage | Wait, Field(discriminator="kind")]

instruction_list_adapter: TypeAdapter[list[Instruction]] = TypeAdapter(list[Instruction])


def dump_instructions(instructions: list[SendMessage | Wait]) -> list[dict]:
    """Wire form of an instruction stream."""
    return [i.model_dump(mode="json", by_alias=True, exclude_none=True) for i in instructions]
