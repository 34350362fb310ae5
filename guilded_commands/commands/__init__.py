"""Command framework: registry, argument binding, dispatch and the client module."""

from guilded_commands.commands.arguments import (
    PARSERS,
    ArgumentDescriptor,
    ArgumentType,
    BadArgument,
    BindResult,
    argument_type_for,
    bind,
    has_correct_count,
)
from guilded_commands.commands.context import CommandEvent, InvocationContext
from guilded_commands.commands.dispatcher import Dispatcher, Failure, Invocation, tokenize
from guilded_commands.commands.failures import (
    BadCommandArgumentEvent,
    FailedCommandEvent,
    FailureType,
)
from guilded_commands.commands.module import CommandModule, MessageSource
from guilded_commands.commands.registry import (
    CommandContainer,
    CommandContainerDescriptor,
    CommandDescriptor,
    CommandRegistry,
    command,
    command_fallback,
    describe_command,
)

__all__ = [
    "PARSERS",
    "ArgumentDescriptor",
    "ArgumentType",
    "BadArgument",
    "BadCommandArgumentEvent",
    "BindResult",
    "CommandContainer",
    "CommandContainerDescriptor",
    "CommandDescriptor",
    "CommandEvent",
    "CommandModule",
    "CommandRegistry",
    "Dispatcher",
    "FailedCommandEvent",
    "Failure",
    "FailureType",
    "Invocation",
    "InvocationContext",
    "MessageSource",
    "argument_type_for",
    "bind",
    "command",
    "command_fallback",
    "describe_command",
    "has_correct_count",
    "tokenize",
]
