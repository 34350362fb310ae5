"""Tests for CommandModule: attaching to a client and background dispatch."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from guilded_commands.client import GuildedClient
from guilded_commands.commands.context import CommandEvent
from guilded_commands.commands.failures import FailedCommandEvent, FailureType
from guilded_commands.commands.module import CommandModule
from guilded_commands.commands.registry import command
from guilded_commands.config import BotConfig, CommandConfig
from guilded_commands.errors import AlreadyAttachedError, AttachmentError, NotAttachedError
from guilded_commands.events import EventStream
from guilded_commands.models import MessageEvent

MakeEvent = Callable[..., MessageEvent]


class FakeSource:
    def __init__(self) -> None:
        self.message_created: EventStream[MessageEvent] = EventStream("ChatMessageCreated")


class Commands(CommandModule):
    def __init__(self, config: CommandConfig | None = None, **kwargs: Any) -> None:
        self.seen: list[tuple[str, CommandEvent]] = []
        super().__init__(config, **kwargs)

    @command(aliases=["p"])
    async def ping(self, event: CommandEvent) -> None:
        self.seen.append(("ping", event))
        await event.reply("pong")

    @command("boom")
    async def boom(self, event: CommandEvent) -> None:
        raise RuntimeError("kaboom")

    @command("slow")
    async def slow(self, event: CommandEvent) -> None:
        await asyncio.sleep(0.01)
        self.seen.append(("slow", event))


@pytest.fixture
def module() -> Commands:
    return Commands()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


class TestAttach:
    def test_attach_subscribes(self, module: Commands, source: FakeSource) -> None:
        module.attach(source)
        assert module.is_attached
        assert module.source is source
        assert source.message_created.subscriber_count == 1

    def test_attach_twice_to_same_source(self, module: Commands, source: FakeSource) -> None:
        module.attach(source)
        with pytest.raises(AlreadyAttachedError):
            module.attach(source)
        assert source.message_created.subscriber_count == 1

    def test_attach_moves_to_new_source(self, module: Commands, source: FakeSource) -> None:
        other = FakeSource()
        module.attach(source)
        module.attach(other)
        assert module.source is other
        assert source.message_created.subscriber_count == 0
        assert other.message_created.subscriber_count == 1

    def test_detach(self, module: Commands, source: FakeSource) -> None:
        module.attach(source)
        module.detach()
        assert not module.is_attached
        assert source.message_created.subscriber_count == 0

    def test_detach_when_not_attached(self, module: Commands) -> None:
        with pytest.raises(NotAttachedError):
            module.detach()

    def test_attachment_errors_share_base(self) -> None:
        assert issubclass(AlreadyAttachedError, AttachmentError)
        assert issubclass(NotAttachedError, AttachmentError)

    def test_attach_with_config_replaces_dispatcher(
        self, module: Commands, source: FakeSource
    ) -> None:
        module.attach(source, CommandConfig(prefix="?"))
        assert module.config.prefix == "?"
        assert module.dispatcher.registry is module.commands

    def test_default_config(self, module: Commands) -> None:
        assert module.config == CommandConfig()


class TestDispatch:
    async def test_message_runs_command(
        self, module: Commands, source: FakeSource, make_event: MakeEvent, sender: AsyncMock
    ) -> None:
        module.attach(source)
        source.message_created.publish(make_event("!ping"))
        await module.drain()

        assert [name for name, _ in module.seen] == ["ping"]
        sender.create_message.assert_awaited_once()
        assert sender.create_message.call_args.args[1] == "pong"

    async def test_alias(
        self, module: Commands, source: FakeSource, make_event: MakeEvent
    ) -> None:
        module.attach(source)
        source.message_created.publish(make_event("!p"))
        await module.drain()
        assert module.seen[0][1].command_name == "p"

    async def test_publish_does_not_wait_for_handler(
        self, module: Commands, source: FakeSource, make_event: MakeEvent
    ) -> None:
        module.attach(source)
        source.message_created.publish(make_event("!slow"))
        assert module.pending == 1
        assert module.seen == []

        await module.drain()
        assert module.pending == 0
        assert [name for name, _ in module.seen] == ["slow"]

    async def test_messages_without_content_are_skipped(
        self, module: Commands, source: FakeSource, make_event: MakeEvent
    ) -> None:
        module.attach(source)
        source.message_created.publish(make_event(None))
        source.message_created.publish(make_event(""))
        assert module.pending == 0

    async def test_non_commands_are_ignored(
        self, module: Commands, source: FakeSource, make_event: MakeEvent
    ) -> None:
        failures: list[FailedCommandEvent] = []
        module.failed_commands.subscribe(failures.append)
        module.attach(source)
        source.message_created.publish(make_event("just chatting"))
        await module.drain()
        assert module.seen == []
        assert failures == []

    async def test_handler_error_is_isolated(
        self,
        module: Commands,
        source: FakeSource,
        make_event: MakeEvent,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        module.attach(source)
        with caplog.at_level(logging.ERROR, logger="guilded_commands.commands.module"):
            source.message_created.publish(make_event("!boom"))
            await module.drain()

        assert "Command handler failed" in caplog.text
        assert "kaboom" in caplog.text

        source.message_created.publish(make_event("!ping"))
        await module.drain()
        assert [name for name, _ in module.seen] == ["ping"]

    async def test_failed_commands_are_published(
        self, module: Commands, source: FakeSource, make_event: MakeEvent
    ) -> None:
        failures: list[FailedCommandEvent] = []
        module.failed_commands.subscribe(failures.append)
        module.attach(source)

        source.message_created.publish(make_event("!nope"))
        source.message_created.publish(make_event("!ping extra"))
        await module.drain()

        assert len(failures) == 2
        assert {f.fail_type for f in failures} == {
            FailureType.NO_COMMAND_FOUND,
            FailureType.BAD_ARGUMENT_COUNT,
        }

    async def test_detach_stops_routing(
        self, module: Commands, source: FakeSource, make_event: MakeEvent
    ) -> None:
        module.attach(source)
        module.detach()
        source.message_created.publish(make_event("!ping"))
        await module.drain()
        assert module.seen == []

    async def test_detach_keeps_in_flight_commands(
        self, module: Commands, source: FakeSource, make_event: MakeEvent
    ) -> None:
        module.attach(source)
        source.message_created.publish(make_event("!slow"))
        module.detach()
        await module.drain()
        assert [name for name, _ in module.seen] == ["slow"]

    async def test_custom_prefix(self, source: FakeSource, make_event: MakeEvent) -> None:
        module = Commands(CommandConfig(prefix="gd."))
        module.attach(source)
        source.message_created.publish(make_event("!ping"))
        source.message_created.publish(make_event("gd.ping"))
        await module.drain()
        assert [event.prefix for _, event in module.seen] == ["gd."]

    async def test_additional_context_reaches_handler(
        self, source: FakeSource, make_event: MakeEvent
    ) -> None:
        module = Commands(additional_context={"db": "handle"})
        module.attach(source)
        source.message_created.publish(make_event("!ping"))
        await module.drain()
        assert module.seen[0][1].additional_context == {"db": "handle"}


class TestDoCommands:
    async def test_runs_inline(self, module: Commands, make_event: MakeEvent) -> None:
        assert await module.do_commands(make_event("!ping")) is True
        assert [name for name, _ in module.seen] == ["ping"]

    async def test_prefix_override(self, module: Commands, make_event: MakeEvent) -> None:
        assert await module.do_commands(make_event("!ping"), prefix="$") is False
        assert await module.do_commands(make_event("$ping"), prefix="$") is True

    async def test_handler_errors_propagate(self, module: Commands, make_event: MakeEvent) -> None:
        with pytest.raises(RuntimeError, match="kaboom"):
            await module.do_commands(make_event("!boom"))

    async def test_works_without_attach(self, module: Commands, make_event: MakeEvent) -> None:
        assert not module.is_attached
        assert await module.do_commands(make_event("hello")) is False


async def test_end_to_end_with_client(
    make_payload: Callable[..., dict[str, Any]], sender: AsyncMock
) -> None:
    client = GuildedClient(BotConfig(token="gapi_x"), rest=sender)
    module = Commands()
    module.attach(client)

    client.handle_socket_message(
        {"op": 0, "t": "ChatMessageCreated", "s": "1", "d": make_payload("!ping")}
    )
    await module.drain()

    assert [name for name, _ in module.seen] == ["ping"]
    sender.create_message.assert_awaited_once()
    reply_to = sender.create_message.call_args.kwargs["reply_message_ids"]
    assert reply_to == [module.seen[0][1].message_event.message.id]
