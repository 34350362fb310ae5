"""Invocation context and the event handed to every command handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from uuid import UUID

    from guilded_commands.config import CommandConfig
    from guilded_commands.models import HashId, Message, MessageEvent


@dataclass(frozen=True, slots=True)
class InvocationContext:
    """Root-level facts about one triggered command.

    For ``!config items add x`` the root command stays ``config`` and
    ``arguments`` is ``"items add x"``, however deep dispatch descends.
    """

    message_event: MessageEvent
    config: CommandConfig
    prefix: str
    command_name: str
    arguments: str
    additional_context: Any = None


@dataclass(frozen=True)
class CommandEvent:
    """First argument of every command handler."""

    context: InvocationContext
    command_name: str
    arguments: tuple[str, ...]

    @property
    def message_event(self) -> MessageEvent:
        return self.context.message_event

    @property
    def prefix(self) -> str:
        return self.context.prefix

    @property
    def additional_context(self) -> Any:
        return self.context.additional_context

    @property
    def channel_id(self) -> UUID:
        return self.message_event.channel_id

    @property
    def created_by(self) -> HashId:
        return self.message_event.created_by

    @property
    def content(self) -> str | None:
        return self.message_event.content

    async def reply(self, content: str, **kwargs: Any) -> Message:
        return await self.message_event.reply(content, **kwargs)

    async def create_message(self, content: str, **kwargs: Any) -> Message:
        return await self.message_event.create_message(content, **kwargs)
