"""Command module: bridges a client's message stream into the dispatcher."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

from guilded_commands.commands.dispatcher import Dispatcher
from guilded_commands.commands.registry import CommandContainer
from guilded_commands.config import CommandConfig
from guilded_commands.errors import AlreadyAttachedError, NotAttachedError
from guilded_commands.events import EventStream, Subscription

if TYPE_CHECKING:
    from guilded_commands.commands.failures import FailedCommandEvent
    from guilded_commands.models import MessageEvent

logger = logging.getLogger(__name__)


class MessageSource(Protocol):
    """Anything exposing a stream of created messages, e.g. ``GuildedClient``."""

    message_created: EventStream[MessageEvent]


class CommandModule(CommandContainer):
    """Root command container that listens to one client at a time.

    Subclass it and declare commands with ``@command``::

        class Commands(CommandModule):
            @command(aliases=["p"])
            async def ping(self, event: CommandEvent) -> None:
                await event.reply("pong")

        module = Commands()
        module.attach(client)

    Every qualifying message is dispatched in its own task. Failed lookups and
    bad arguments are published on ``failed_commands``.
    """

    def __init__(
        self,
        config: CommandConfig | None = None,
        *,
        additional_context: Any = None,
    ) -> None:
        super().__init__()
        self.failed_commands: EventStream[FailedCommandEvent] = EventStream("FailedCommand")
        self._additional_context = additional_context
        self._dispatcher = self._make_dispatcher(config or CommandConfig())
        self._source: MessageSource | None = None
        self._subscription: Subscription[MessageEvent] | None = None
        self._tasks: set[asyncio.Task[bool]] = set()

    def _make_dispatcher(self, config: CommandConfig) -> Dispatcher:
        return Dispatcher(self.commands, config, on_failure=self.failed_commands.publish)

    @property
    def config(self) -> CommandConfig:
        return self._dispatcher.config

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def source(self) -> MessageSource | None:
        return self._source

    @property
    def is_attached(self) -> bool:
        return self._source is not None

    @property
    def pending(self) -> int:
        """Number of dispatches still running."""
        return len(self._tasks)

    def attach(self, source: MessageSource, config: CommandConfig | None = None) -> None:
        """Start dispatching messages from *source*.

        Attaching to a different source first detaches from the current one.
        Raises ``AlreadyAttachedError`` if already attached to *source*.
        """
        if self._source is source:
            msg = "Command module is already attached to this client"
            raise AlreadyAttachedError(msg)
        if self._source is not None:
            logger.info("Moving command module to a new client")
            self._release()
        if config is not None:
            self._dispatcher = self._make_dispatcher(config)

        self._subscription = source.message_created.subscribe(self._on_message_created)
        self._source = source
        logger.info(
            "Command module attached (prefix=%r, commands=%d)", self.config.prefix, len(self.commands)
        )

    def detach(self) -> None:
        """Stop dispatching. In-flight commands keep running."""
        if self._source is None:
            msg = "Command module is not attached to any client"
            raise NotAttachedError(msg)
        self._release()
        logger.info("Command module detached")

    def _release(self) -> None:
        subscription = self._subscription
        self._subscription = None
        self._source = None
        if subscription is not None:
            subscription.dispose()

    def _on_message_created(self, message_event: MessageEvent) -> None:
        if not message_event.content:
            return
        task = asyncio.create_task(self._safe_dispatch(message_event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _safe_dispatch(self, message_event: MessageEvent) -> bool:
        """Run one dispatch with exception protection."""
        try:
            return await self.do_commands(message_event)
        except Exception:
            logger.exception("Command handler failed channel=%s", message_event.channel_id)
            return False

    async def do_commands(self, message_event: MessageEvent, prefix: str | None = None) -> bool:
        """Dispatch *message_event* now. Returns True if a handler was invoked."""
        return await self._dispatcher.dispatch(message_event, prefix, self._additional_context)

    async def drain(self) -> None:
        """Wait for every in-flight dispatch to finish."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
