"""Command dispatcher: prefix check, tokenizing, scope walk, binding, invocation.

Resolution is synchronous and side-effect free; only the handler call (and
failure fallbacks) may suspend.
"""

from __future__ import annotations

import functools
import inspect
import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from guilded_commands.commands.arguments import bind, has_correct_count
from guilded_commands.commands.context import CommandEvent, InvocationContext
from guilded_commands.commands.failures import (
    BadCommandArgumentEvent,
    FailedCommandEvent,
    FailureType,
)
from guilded_commands.commands.registry import (
    CommandContainerDescriptor,
    CommandDescriptor,
    CommandRegistry,
)
from guilded_commands.config import CommandConfig, SplitOptions
from guilded_commands.log_context import log_context

if TYPE_CHECKING:
    from guilded_commands.models import MessageEvent

logger = logging.getLogger(__name__)

FailureCallback = Callable[[FailedCommandEvent], Any]


@functools.lru_cache(maxsize=32)
def _separator_pattern(separators: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile("|".join(re.escape(sep) for sep in separators))


def tokenize(
    text: str,
    separators: Sequence[str],
    split_options: SplitOptions = SplitOptions.REMOVE_EMPTY,
) -> list[str]:
    """Split *text* on any of *separators*.

    With ``KEEP_EMPTY`` consecutive separators yield empty tokens, with
    ``REMOVE_EMPTY`` they collapse.
    """
    tokens = _separator_pattern(tuple(separators)).split(text) if separators else [text]
    if split_options is SplitOptions.REMOVE_EMPTY:
        return [token for token in tokens if token]
    return tokens


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


@dataclass(frozen=True, slots=True)
class Invocation:
    """A resolved command with fully bound arguments, ready to run."""

    command: CommandDescriptor
    event: CommandEvent
    values: tuple[Any, ...]

    async def invoke(self) -> Any:
        args = self.values
        if self.command.variadic_rest and args:
            args = (*args[:-1], *args[-1])
        return await _maybe_await(self.command.callback(self.event, *args))


@dataclass(frozen=True, slots=True)
class Failure:
    """A failed resolution and the scope it failed in."""

    event: FailedCommandEvent
    scope: CommandRegistry


class Dispatcher:
    """Resolves message events against a registry tree and runs the result."""

    def __init__(
        self,
        registry: CommandRegistry,
        config: CommandConfig | None = None,
        *,
        on_failure: FailureCallback | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or CommandConfig()
        self._on_failure = on_failure

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    @property
    def config(self) -> CommandConfig:
        return self._config

    def resolve(
        self,
        message_event: MessageEvent,
        prefix: str | None = None,
        additional_context: Any = None,
    ) -> Invocation | Failure | None:
        """Decide what *message_event* triggers. None means "not a command"."""
        content = message_event.content
        prefix = self._config.prefix if prefix is None else prefix
        if not content or not content.startswith(prefix):
            return None

        remainder = content[len(prefix) :]
        tokens = tokenize(remainder, self._config.separators, self._config.split_options)
        if not tokens or not tokens[0]:
            return None

        name, args = tokens[0], tokens[1:]
        context = InvocationContext(
            message_event=message_event,
            config=self._config,
            prefix=prefix,
            command_name=name,
            arguments=self._raw_arguments(remainder, name),
            additional_context=additional_context,
        )
        return self._walk(context, name, args)

    def _raw_arguments(self, remainder: str, name: str) -> str:
        after = remainder[remainder.index(name) + len(name) :]
        return after.lstrip("".join(self._config.separators))

    def _walk(
        self, context: InvocationContext, name: str, args: list[str]
    ) -> Invocation | Failure:
        scope = self._registry
        while True:
            entry = scope.resolve(name)
            if entry is None:
                return Failure(
                    FailedCommandEvent(context, name, tuple(args), FailureType.NO_COMMAND_FOUND),
                    scope,
                )
            if isinstance(entry, CommandContainerDescriptor):
                if not args:
                    return Failure(
                        FailedCommandEvent(context, name, (), FailureType.UNSPECIFIED),
                        entry.registry,
                    )
                scope = entry.registry
                name, args = args[0], args[1:]
                continue
            return self._bind(entry, scope, context, name, args)

    @staticmethod
    def _bind(
        command: CommandDescriptor,
        scope: CommandRegistry,
        context: InvocationContext,
        name: str,
        args: list[str],
    ) -> Invocation | Failure:
        arguments = tuple(args)
        if not has_correct_count(command, len(arguments)):
            return Failure(
                FailedCommandEvent(context, name, arguments, FailureType.BAD_ARGUMENT_COUNT),
                scope,
            )
        result = bind(command, arguments)
        if not result.ok:
            return Failure(
                BadCommandArgumentEvent(
                    context, name, arguments, bad_arguments=result.bad_arguments
                ),
                scope,
            )
        return Invocation(command, CommandEvent(context, name, arguments), result.values)

    async def dispatch(
        self,
        message_event: MessageEvent,
        prefix: str | None = None,
        additional_context: Any = None,
    ) -> bool:
        """Resolve and run *message_event*. Returns True if a handler was invoked.

        Failures go to the failing scope's fallbacks and to ``on_failure``.
        Exceptions raised by handlers and fallbacks propagate to the caller.
        """
        outcome = self.resolve(message_event, prefix, additional_context)
        if outcome is None:
            return False

        with log_context(
            operation="cmd",
            channel_id=str(message_event.channel_id),
            command=outcome.event.context.command_name,
        ):
            if isinstance(outcome, Failure):
                logger.info(
                    "Command failed: %s name=%s",
                    outcome.event.fail_type.value,
                    outcome.event.command_name,
                )
                await self._report(outcome)
                return False

            logger.info("Invoking command %s", outcome.command.name)
            await outcome.invoke()
            return True

    async def _report(self, failure: Failure) -> None:
        if self._on_failure is not None:
            self._on_failure(failure.event)
        for fallback in failure.scope.fallbacks:
            await _maybe_await(fallback(failure.event))
