"""Inbound chat events consumed by the interpreter."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    COMMAND = "command"
    TEXT = "text"
    CALLBACK = "callback"


def normalize_command(name: str) -> str:
    """Strip the leading '/' and any '@botname' suffix: '/start@MyBot' -> 'start'."""
    return name.strip().lstrip("/").split("@", 1)[0]


class ChatEvent(BaseModel):
    """One inbound chat event from the bot's update stream."""

    model_config = ConfigDict(populate_by_name=True)

    kind: EventKind
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    text: str | None = None
    callback_data: str | None = Field(default=None, alias="callbackData")
    chat_id: int | str = Field(..., alias="chatId")
    user_id: int | str = Field(..., alias="userId")

    @classmethod
    def from_message_text(cls, text: str, *, chat_id: int | str, user_id: int | str) -> ChatEvent:
        """Build a command event for '/cmd arg...' messages, a text event otherwise."""
        stripped = text.strip()
        if stripped.startswith("/") and len(stripped) > 1:
            head, *args = stripped.split()
            return cls(
                kind=EventKind.COMMAND,
                command=normalize_command(head),
                args=args,
                text=text,
                chat_id=chat_id,
                user_id=user_id,
            )
        return cls(kind=EventKind.TEXT, text=text, chat_id=chat_id, user_id=user_id)

    @classmethod
    def callback(cls, data: str, *, chat_id: int | str, user_id: int | str) -> ChatEvent:
        return cls(kind=EventKind.CALLBACK, callback_data=data, chat_id=chat_id, user_id=user_id)

    def to_context(self) -> dict[str, Any]:
        """Event fields exposed to condition expressions."""
        return self.model_dump(mode="json", by_alias=True)
