"""Trigger node config models.

One model per trigger kind, keyed by the node ``type``.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field

from botflow.schema.nodes.common import MatchType, NodeConfigBase


class CommandTriggerConfig(NodeConfigBase):
    """Bot command trigger (``/start``)."""

    command: str = Field(default="", description="Command name, leading '/' optional")
    start_param_prefix: str | None = Field(
        default=None,
        validation_alias=AliasChoices("startParamPrefix", "start_param_prefix"),
        serialization_alias="startParamPrefix",
        description="Require a first command argument starting with this prefix",
    )


class TextTriggerConfig(NodeConfigBase):
    """Free text trigger."""

    text: str = Field(default="", description="Pattern compared with the message text")
    match_type: MatchType = Field(
        default=MatchType.EXACT,
        validation_alias=AliasChoices("matchType", "match_type"),
        serialization_alias="matchType",
    )
    case_sensitive: bool = Field(
        default=True,
        validation_alias=AliasChoices("caseSensitive", "case_sensitive"),
        serialization_alias="caseSensitive",
    )


class CallbackTriggerConfig(NodeConfigBase):
    """Inline button callback trigger.

    An empty ``callbackData`` matches any callback.
    """

    callback_data: str = Field(
        default="",
        validation_alias=AliasChoices("callbackData", "callback_data", "data"),
        serialization_alias="callbackData",
    )
    match_type: MatchType = Field(
        default=MatchType.EXACT,
        validation_alias=AliasChoices("matchType", "match_type"),
        serialization_alias="matchType",
    )


TRIGGER_CONFIG_MAP: dict[str, type[NodeConfigBase]] = {
    "trigger-command": CommandTriggerConfig,
    "trigger-text": TextTriggerConfig,
    "trigger-callback": CallbackTriggerConfig,
}
