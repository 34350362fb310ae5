"""Wire model for the message events the command framework consumes."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Protocol
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler, PrivateAttr
from pydantic.alias_generators import to_camel
from pydantic_core import core_schema

_HASH_ID_RE = re.compile(r"[0-9A-Za-z]{8}")

MESSAGE_TEXT_LIMIT = 4000
MESSAGE_REPLY_LIMIT = 5


class HashId(str):
    """Short alphanumeric identifier used for users, servers and groups."""

    __slots__ = ()

    def __new__(cls, value: str) -> HashId:
        if not isinstance(value, str) or not _HASH_ID_RE.fullmatch(value):
            msg = f"Invalid HashId: {value!r} (expected 8 alphanumeric characters)"
            raise ValueError(msg)
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"HashId({str(self)!r})"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source: Any, _handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(cls, core_schema.str_schema())


class MessageType(str, Enum):
    DEFAULT = "default"
    SYSTEM = "system"


class SocketOpcode(IntEnum):
    """Opcodes of the gateway socket envelope."""

    EVENT = 0
    WELCOME = 1
    RESUME = 2
    ERROR = 8
    PING = 9
    PONG = 10


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Message(_WireModel):
    """A chat message as delivered by the API."""

    id: UUID
    channel_id: UUID
    created_by: HashId
    created_at: datetime
    type: MessageType = MessageType.DEFAULT
    server_id: HashId | None = None
    content: str | None = None
    reply_message_ids: list[UUID] = Field(default_factory=list)
    is_private: bool = False
    is_silent: bool = False
    created_by_webhook_id: UUID | None = None
    updated_at: datetime | None = None

    @property
    def is_reply(self) -> bool:
        return bool(self.reply_message_ids)

    @property
    def is_system_message(self) -> bool:
        return self.type is MessageType.SYSTEM


class MessageSender(Protocol):
    """Anything able to post a message into a channel."""

    async def create_message(
        self,
        channel_id: UUID,
        content: str,
        *,
        reply_message_ids: list[UUID] | None = None,
        is_private: bool = False,
        is_silent: bool = False,
    ) -> Message: ...


class MessageEvent(_WireModel):
    """Payload of ``ChatMessageCreated``: the message plus the server it was posted in."""

    message: Message
    server_id: HashId | None = None

    _sender: MessageSender | None = PrivateAttr(default=None)

    def bind(self, sender: MessageSender) -> MessageEvent:
        """Attach the capability used by ``reply`` and ``create_message``."""
        self._sender = sender
        return self

    @property
    def sender(self) -> MessageSender:
        if self._sender is None:
            msg = "MessageEvent is not bound to a client -- call bind() first"
            raise RuntimeError(msg)
        return self._sender

    @property
    def channel_id(self) -> UUID:
        return self.message.channel_id

    @property
    def content(self) -> str | None:
        return self.message.content

    @property
    def created_by(self) -> HashId:
        return self.message.created_by

    @property
    def created_at(self) -> datetime:
        return self.message.created_at

    @property
    def is_system_message(self) -> bool:
        return self.message.is_system_message

    async def create_message(
        self, content: str, *, is_private: bool = False, is_silent: bool = False
    ) -> Message:
        """Post *content* into the channel the message came from."""
        return await self.sender.create_message(
            self.channel_id, content, is_private=is_private, is_silent=is_silent
        )

    async def reply(
        self, content: str, *, is_private: bool = False, is_silent: bool = False
    ) -> Message:
        """Post *content* as a reply to this message."""
        return await self.sender.create_message(
            self.channel_id,
            content,
            reply_message_ids=[self.message.id],
            is_private=is_private,
            is_silent=is_silent,
        )


class SocketMessage(BaseModel):
    """Gateway envelope: ``{"op": .., "t": .., "d": {..}, "s": ..}``."""

    op: SocketOpcode
    t: str | None = None
    d: dict[str, Any] | None = None
    s: str | None = None

    @property
    def event_name(self) -> str | None:
        return self.t

    @property
    def message_id(self) -> str | None:
        return self.s
