"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from guilded_commands.models import Message, MessageEvent

CHANNEL_ID = UUID("6f1b1c1e-9a7d-4a53-9a36-3b1f0f4b6c11")
AUTHOR_ID = "Ann6LewA"
SERVER_ID = "wlVr3Ggl"

MakeEvent = Callable[..., MessageEvent]


def message_payload(content: str | None = "hello", **overrides: Any) -> dict[str, Any]:
    """ChatMessageCreated ``d`` payload as the gateway sends it."""
    message: dict[str, Any] = {
        "id": str(uuid4()),
        "type": "default",
        "serverId": SERVER_ID,
        "channelId": str(CHANNEL_ID),
        "createdAt": "2024-03-01T12:00:00.000Z",
        "createdBy": AUTHOR_ID,
    }
    if content is not None:
        message["content"] = content
    message.update(overrides)
    return {"serverId": SERVER_ID, "message": message}


@pytest.fixture
def sender() -> AsyncMock:
    """Stand-in for the REST client: records create_message calls."""
    mock = AsyncMock()
    mock.create_message.return_value = Message(
        id=uuid4(),
        channel_id=CHANNEL_ID,
        created_by=AUTHOR_ID,
        created_at=datetime(2024, 3, 1, tzinfo=UTC),
        content="ok",
    )
    return mock


@pytest.fixture
def make_event(sender: AsyncMock) -> MakeEvent:
    """Build a bound MessageEvent with the given content."""

    def _make(content: str | None = "hello", **overrides: Any) -> MessageEvent:
        event = MessageEvent.model_validate(message_payload(content, **overrides))
        return event.bind(sender)

    return _make


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    return message_payload
