"""Failed dispatch outcomes, reported as events instead of exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from guilded_commands.commands.context import CommandEvent

if TYPE_CHECKING:
    from guilded_commands.commands.arguments import BadArgument


class FailureType(Enum):
    UNSPECIFIED = "unspecified"
    """A container was invoked without a sub-command name."""

    NO_COMMAND_FOUND = "no_command_found"
    """No command or container has the given name in the current scope."""

    BAD_ARGUMENT_COUNT = "bad_argument_count"
    """The command exists but the number of arguments does not fit it."""

    BAD_ARGUMENTS = "bad_arguments"
    """One or more arguments could not be converted to their declared type."""


@dataclass(frozen=True)
class FailedCommandEvent(CommandEvent):
    """A message matched the prefix but no handler could be invoked."""

    fail_type: FailureType


@dataclass(frozen=True)
class BadCommandArgumentEvent(FailedCommandEvent):
    """Carries every argument that failed conversion, in declaration order."""

    fail_type: FailureType = FailureType.BAD_ARGUMENTS
    bad_arguments: tuple[BadArgument, ...] = ()
