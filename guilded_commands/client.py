"""Guilded client: REST message posting and socket event decoding."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import aiohttp
from pydantic import ValidationError

from guilded_commands.config import DEFAULT_API_BASE_URL, BotConfig
from guilded_commands.errors import GuildedApiError
from guilded_commands.events import EventStream
from guilded_commands.log_context import log_context
from guilded_commands.models import (
    MESSAGE_REPLY_LIMIT,
    MESSAGE_TEXT_LIMIT,
    Message,
    MessageEvent,
    SocketMessage,
    SocketOpcode,
)

if TYPE_CHECKING:
    from uuid import UUID

logger = logging.getLogger(__name__)

_TIMEOUT = aiohttp.ClientTimeout(total=30)

MESSAGE_CREATED_EVENT = "ChatMessageCreated"


class GuildedRestClient:
    """Minimal REST client: just enough for command handlers to answer."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_BASE_URL,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=_TIMEOUT,
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> GuildedRestClient:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def create_message(
        self,
        channel_id: UUID,
        content: str,
        *,
        reply_message_ids: list[UUID] | None = None,
        is_private: bool = False,
        is_silent: bool = False,
    ) -> Message:
        """POST a message into *channel_id* and return the created message."""
        if not content:
            msg = "Message content must not be empty"
            raise ValueError(msg)
        if len(content) > MESSAGE_TEXT_LIMIT:
            msg = f"Message content exceeds {MESSAGE_TEXT_LIMIT} characters"
            raise ValueError(msg)
        if reply_message_ids and len(reply_message_ids) > MESSAGE_REPLY_LIMIT:
            msg = f"A message can reply to at most {MESSAGE_REPLY_LIMIT} messages"
            raise ValueError(msg)

        body: dict[str, Any] = {"content": content}
        if reply_message_ids:
            body["replyMessageIds"] = [str(mid) for mid in reply_message_ids]
        if is_private:
            body["isPrivate"] = True
        if is_silent:
            body["isSilent"] = True

        data = await self._request("POST", f"/channels/{channel_id}/messages", body)
        return Message.model_validate(data["message"])

    async def _request(self, method: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        session = self._get_session()
        with log_context(operation="rest"):
            async with session.request(
                method,
                url,
                json=body,
                headers={"Authorization": f"Bearer {self._token}"},
            ) as resp:
                if resp.status >= 400:
                    code, message = await _read_error(resp)
                    logger.warning("%s %s failed: %d %s", method, path, resp.status, code)
                    raise GuildedApiError(resp.status, code, message)
                logger.debug("%s %s -> %d", method, path, resp.status)
                data: dict[str, Any] = await resp.json()
                return data


async def _read_error(resp: aiohttp.ClientResponse) -> tuple[str, str]:
    try:
        payload = await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, json.JSONDecodeError, ValueError):
        return "", await resp.text()
    if not isinstance(payload, dict):
        return "", str(payload)
    return str(payload.get("code", "")), str(payload.get("message", ""))


class GuildedClient:
    """Owns the REST client and the stream of incoming message events.

    The socket connection itself is owned by the hosting application; it
    hands every raw frame to ``handle_socket_message``.
    """

    def __init__(self, config: BotConfig, *, rest: GuildedRestClient | None = None) -> None:
        self._config = config
        self.rest = rest or GuildedRestClient(config.token, config.api_base_url)
        self.message_created: EventStream[MessageEvent] = EventStream(MESSAGE_CREATED_EVENT)
        self.last_message_id: str | None = None

    @property
    def config(self) -> BotConfig:
        return self._config

    async def close(self) -> None:
        await self.rest.close()

    def handle_socket_message(self, raw: str | bytes | dict[str, Any]) -> MessageEvent | None:
        """Decode one gateway frame and publish it if it is a new chat message.

        Returns the published event, or None for frames that are not chat messages.
        Malformed frames are logged and dropped.
        """
        with log_context(operation="ws"):
            return self._handle_frame(raw)

    def _handle_frame(self, raw: str | bytes | dict[str, Any]) -> MessageEvent | None:
        try:
            envelope = (
                SocketMessage.model_validate(raw)
                if isinstance(raw, dict)
                else SocketMessage.model_validate_json(raw)
            )
        except ValidationError:
            logger.warning("Dropping malformed socket frame", exc_info=True)
            return None

        if envelope.message_id:
            self.last_message_id = envelope.message_id

        if envelope.op is not SocketOpcode.EVENT:
            logger.debug("Ignoring socket opcode %s", envelope.op.name)
            return None
        if envelope.event_name != MESSAGE_CREATED_EVENT or envelope.d is None:
            logger.debug("Ignoring socket event %s", envelope.event_name)
            return None

        try:
            event = MessageEvent.model_validate(envelope.d)
        except ValidationError:
            logger.warning("Dropping malformed %s payload", MESSAGE_CREATED_EVENT, exc_info=True)
            return None

        event.bind(self.rest)
        logger.debug("Message created channel=%s", event.channel_id)
        self.message_created.publish(event)
        return event
