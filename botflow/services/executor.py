"""Reference action executor.

Carries out an instruction stream against a bot client, strictly in
order. Waits are real pauses here; the interpreter itself never sleeps.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from botflow.exceptions import ActionExecutionError
from botflow.graph.instructions import SendMessage, Wait
from botflow.schema.nodes import InlineButton, MessageType
from botflow.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@runtime_checkable
class BotClient(Protocol):
    """Outbound side of a chat bot API."""

    async def send_message(
        self,
        bot_id: str,
        chat_id: int | str,
        text: str,
        *,
        buttons: list[list[InlineButton]] | None = None,
    ) -> Any: ...

    async def send_media(
        self,
        bot_id: str,
        chat_id: int | str,
        message_type: MessageType,
        file_id: str,
        *,
        caption: str = "",
        buttons: list[list[InlineButton]] | None = None,
    ) -> Any: ...


class InstructionExecutor:
    """Runs instructions one after another for a single chat.

    Args:
        client: Bot client used for sends.
        settings: Application settings (``max_delay_seconds`` caps waits).
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        client: BotClient,
        settings: Settings | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()
        self._sleep = sleep

    async def run(
        self,
        bot_id: str,
        chat_id: int | str,
        instructions: Sequence[SendMessage | Wait],
    ) -> int:
        """Execute instructions in order.

        Returns:
            Number of instructions executed.

        Raises:
            ActionExecutionError: If the client fails or a media message has
                no file; later instructions are not executed.
        """
        for index, instruction in enumerate(instructions):
            if isinstance(instruction, Wait):
                seconds = min(instruction.seconds, self.settings.max_delay_seconds)
                if seconds < instruction.seconds:
                    logger.warning(
                        "Wait of %.1fs at node %s capped to %.1fs",
                        instruction.seconds,
                        instruction.node_id,
                        seconds,
                    )
                await self._sleep(seconds)
                continue
            if instruction.message_type != MessageType.TEXT and not instruction.file_id:
                logger.error("Instruction %d (node %s) has no media file", index, instruction.node_id)
                raise ActionExecutionError(
                    f"Media file is required for {instruction.message_type.value} message "
                    f"from node '{instruction.node_id}'",
                    index=index,
                )
            try:
                await self._send(bot_id, chat_id, instruction)
            except Exception as exc:
                logger.error("Instruction %d (node %s) failed: %s", index, instruction.node_id, exc)
                raise ActionExecutionError(
                    f"Failed to execute instruction {index} from node '{instruction.node_id}': {exc}",
                    index=index,
                ) from exc
        return len(instructions)

    async def _send(self, bot_id: str, chat_id: int | str, instruction: SendMessage) -> None:
        buttons = instruction.buttons or None
        if instruction.message_type == MessageType.TEXT or instruction.file_id is None:
            await self.client.send_message(bot_id, chat_id, instruction.text, buttons=buttons)
            return
        await self.client.send_media(
            bot_id,
            chat_id,
            instruction.message_type,
            instruction.file_id,
            caption=instruction.text,
            buttons=buttons,
        )
