"""Action node config models.

Legacy keys written by older editor versions are accepted: ``text`` and
``mediaFile`` for messages, ``delay`` (milliseconds) for delays.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, model_validator

from botflow.schema.nodes.common import InlineButton, MessageType, NodeConfigBase


class MessageActionConfig(NodeConfigBase):
    """Send a text or media message."""

    message_text: str = Field(
        default="",
        validation_alias=AliasChoices("messageText", "message_text", "text"),
        serialization_alias="messageText",
        description="Message text, or caption for media messages",
    )
    file_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("fileId", "file_id", "mediaFile"),
        serialization_alias="fileId",
        description="Telegram file id of the attached media",
    )
    message_type: MessageType = Field(
        default=MessageType.TEXT,
        validation_alias=AliasChoices("messageType", "message_type"),
        serialization_alias="messageType",
    )
    buttons: list[list[InlineButton]] = Field(
        default_factory=list,
        description="Inline keyboard rows",
    )

    @model_validator(mode="before")
    @classmethod
    def _wrap_button_rows(cls, data: Any) -> Any:
        """Accept a flat list of buttons as one button per row."""
        if isinstance(data, dict) and isinstance(data.get("buttons"), list):
            rows = [row if isinstance(row, list) else [row] for row in data["buttons"]]
            data = {**data, "buttons": rows}
        return data


class DelayActionConfig(NodeConfigBase):
    """Pause before the following instructions."""

    delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        validation_alias=AliasChoices("delaySeconds", "delay_seconds"),
        serialization_alias="delaySeconds",
    )

    @model_validator(mode="before")
    @classmethod
    def _convert_legacy_delay(cls, data: Any) -> Any:
        """Convert a legacy ``delay`` in milliseconds to ``delaySeconds``."""
        if not isinstance(data, dict) or "delay" not in data:
            return data
        if "delaySeconds" in data or "delay_seconds" in data:
            return data
        converted = {key: value for key, value in data.items() if key != "delay"}
        try:
            converted["delaySeconds"] = float(data["delay"]) / 1000
        except (TypeError, ValueError):
            # Leave it to field validation to report the bad value
            converted["delaySeconds"] = data["delay"]
        return converted


ACTION_CONFIG_MAP: dict[str, type[NodeConfigBase]] = {
    "action-message": MessageActionConfig,
    "action-delay": DelayActionConfig,
}
