"""Shared types for workflow node config schemas.

Common enums and base models used across trigger, condition and
action node configs.
"""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# =============================================================================
# ENUMS
# =============================================================================


class MatchType(str, Enum):
    """How a text or callback trigger compares its pattern with the event."""

    EXACT = "exact"
    CONTAINS = "contains"
    REGEX = "regex"
    STARTS_WITH = "startsWith"


class MessageType(str, Enum):
    """Telegram message kind produced by an action-message node."""

    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"
    AUDIO = "audio"
    VOICE = "voice"
    ANIMATION = "animation"


# =============================================================================
# COMMON MODELS
# =============================================================================


class NodeConfigBase(BaseModel):
    """Base for all node configs. Extra fields allowed for forward compat.

    Editor-only keys such as ``label`` are kept as extras and round-trip
    unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Position(BaseModel):
    """2-D editor coordinate. Carries no execution semantics."""

    x: float = 0.0
    y: float = 0.0


class InlineButton(BaseModel):
    """One inline keyboard button attached to a sent message."""

    text: str = Field(..., min_length=1, description="Button caption")
    callback_data: str | None = Field(
        default=None,
        validation_alias=AliasChoices("callbackData", "callback_data"),
        serialization_alias="callbackData",
    )
    url: str | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "InlineButton",
    "MatchType",
    "MessageType",
    "NodeConfigBase",
    "Position",
]
