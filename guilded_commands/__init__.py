"""guilded-commands: prefix command framework for Guilded bots."""

from guilded_commands.client import GuildedClient, GuildedRestClient
from guilded_commands.commands import (
    ArgumentType,
    BadCommandArgumentEvent,
    CommandContainer,
    CommandEvent,
    CommandModule,
    FailedCommandEvent,
    FailureType,
    command,
    command_fallback,
)
from guilded_commands.config import BotConfig, CommandConfig, SplitOptions
from guilded_commands.models import HashId, Message, MessageEvent

__all__ = [
    "ArgumentType",
    "BadCommandArgumentEvent",
    "BotConfig",
    "CommandConfig",
    "CommandContainer",
    "CommandEvent",
    "CommandModule",
    "FailedCommandEvent",
    "FailureType",
    "GuildedClient",
    "GuildedRestClient",
    "HashId",
    "Message",
    "MessageEvent",
    "SplitOptions",
    "command",
    "command_fallback",
]
