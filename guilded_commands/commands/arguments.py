"""Argument binding: turn raw command tokens into typed handler arguments.

Every supported parameter type has a tag in ``ArgumentType`` and a parser in
``PARSERS``. Parsers take the raw token and either return the converted value
or raise ``ValueError``/``OverflowError``. ``bind`` runs every parser and
collects all failures, so a user sees every bad argument at once.
"""

from __future__ import annotations

import re
import struct
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, get_args, get_origin
from uuid import UUID

from guilded_commands.errors import UnsupportedArgumentTypeError
from guilded_commands.models import HashId

if TYPE_CHECKING:
    from guilded_commands.commands.registry import CommandDescriptor


class ArgumentType(Enum):
    """Closed set of types a command parameter may declare."""

    STRING = "string"
    BOOL = "bool"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    DATETIME = "datetime"
    UUID = "uuid"
    HASH_ID = "hash_id"
    REST = "rest"


_INT_RANGES: dict[ArgumentType, tuple[int, int]] = {
    ArgumentType.INT8: (-(2**7), 2**7 - 1),
    ArgumentType.INT16: (-(2**15), 2**15 - 1),
    ArgumentType.INT32: (-(2**31), 2**31 - 1),
    ArgumentType.INT64: (-(2**63), 2**63 - 1),
    ArgumentType.UINT8: (0, 2**8 - 1),
    ArgumentType.UINT16: (0, 2**16 - 1),
    ArgumentType.UINT32: (0, 2**32 - 1),
    ArgumentType.UINT64: (0, 2**64 - 1),
}

_INT_RE = re.compile(r"[+-]?[0-9]+")
_DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


def _parse_string(token: str) -> str:
    return token


def _parse_bool(token: str) -> bool:
    text = token.strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    msg = f"{token!r} is not 'true' or 'false'"
    raise ValueError(msg)


def _integer_parser(tag: ArgumentType) -> Callable[[str], int]:
    low, high = _INT_RANGES[tag]

    def parse(token: str) -> int:
        text = token.strip()
        if not _INT_RE.fullmatch(text):
            msg = f"{token!r} is not a base-10 integer"
            raise ValueError(msg)
        value = int(text)
        if not low <= value <= high:
            msg = f"{value} is outside the {tag.value} range [{low}, {high}]"
            raise OverflowError(msg)
        return value

    return parse


def _parse_double(token: str) -> float:
    text = token.strip()
    if "_" in text:
        msg = f"{token!r} is not a number"
        raise ValueError(msg)
    try:
        return float(text)
    except ValueError:
        msg = f"{token!r} is not a number"
        raise ValueError(msg) from None


def _parse_single(token: str) -> float:
    value = _parse_double(token)
    try:
        struct.pack("<f", value)
    except OverflowError:
        msg = f"{token!r} does not fit a single-precision float"
        raise OverflowError(msg) from None
    return value


def _parse_decimal(token: str) -> Decimal:
    text = token.strip()
    if not _DECIMAL_RE.fullmatch(text):
        msg = f"{token!r} is not a decimal number"
        raise ValueError(msg)
    return Decimal(text)


def _parse_datetime(token: str) -> datetime:
    try:
        return datetime.fromisoformat(token.strip())
    except ValueError:
        msg = f"{token!r} is not an ISO-8601 date-time"
        raise ValueError(msg) from None


def _parse_uuid(token: str) -> UUID:
    try:
        return UUID(token.strip())
    except ValueError:
        msg = f"{token!r} is not a UUID"
        raise ValueError(msg) from None


PARSERS: dict[ArgumentType, Callable[[str], Any]] = {
    ArgumentType.STRING: _parse_string,
    ArgumentType.BOOL: _parse_bool,
    **{tag: _integer_parser(tag) for tag in _INT_RANGES},
    ArgumentType.FLOAT: _parse_single,
    ArgumentType.DOUBLE: _parse_double,
    ArgumentType.DECIMAL: _parse_decimal,
    ArgumentType.DATETIME: _parse_datetime,
    ArgumentType.UUID: _parse_uuid,
    ArgumentType.HASH_ID: HashId,
}

# Plain annotations and the tag they select.
_ANNOTATION_TYPES: dict[Any, ArgumentType] = {
    str: ArgumentType.STRING,
    bool: ArgumentType.BOOL,
    int: ArgumentType.INT64,
    float: ArgumentType.DOUBLE,
    Decimal: ArgumentType.DECIMAL,
    datetime: ArgumentType.DATETIME,
    UUID: ArgumentType.UUID,
    HashId: ArgumentType.HASH_ID,
}

# Python type each tag produces, for checking ``Annotated[base, tag]``.
_TAG_BASES: dict[ArgumentType, Any] = {
    **{tag: int for tag in _INT_RANGES},
    ArgumentType.FLOAT: float,
    ArgumentType.DOUBLE: float,
    ArgumentType.STRING: str,
    ArgumentType.BOOL: bool,
    ArgumentType.DECIMAL: Decimal,
    ArgumentType.DATETIME: datetime,
    ArgumentType.UUID: UUID,
    ArgumentType.HASH_ID: HashId,
}


def _is_rest_annotation(annotation: Any) -> bool:
    return get_origin(annotation) is list and get_args(annotation) == (str,)


def argument_type_for(annotation: Any) -> ArgumentType:
    """Map a parameter annotation to its ``ArgumentType``.

    ``list[str]`` is the rest parameter. ``Annotated[int, ArgumentType.UINT8]``
    picks a specific width. Raises ``UnsupportedArgumentTypeError`` otherwise.
    """
    if isinstance(annotation, ArgumentType):
        return annotation
    if _is_rest_annotation(annotation):
        return ArgumentType.REST
    if get_origin(annotation) is Annotated:
        base, *extras = get_args(annotation)
        tags = [extra for extra in extras if isinstance(extra, ArgumentType)]
        if not tags:
            return argument_type_for(base)
        tag = tags[0]
        expected = _TAG_BASES.get(tag)
        if tag is ArgumentType.REST:
            if not _is_rest_annotation(base):
                msg = f"Rest argument must be annotated as list[str], got {base!r}"
                raise UnsupportedArgumentTypeError(msg)
        elif base is not expected:
            msg = f"Argument type {tag.value} cannot be declared on {base!r}"
            raise UnsupportedArgumentTypeError(msg)
        return tag
    try:
        tag = _ANNOTATION_TYPES.get(annotation)
    except TypeError:
        tag = None
    if tag is None:
        msg = f"Cannot have a command argument of type {annotation!r}"
        raise UnsupportedArgumentTypeError(msg)
    return tag


@dataclass(frozen=True, slots=True)
class ArgumentDescriptor:
    """One declared parameter of a command."""

    name: str
    type: ArgumentType
    position: int

    @property
    def is_rest(self) -> bool:
        return self.type is ArgumentType.REST


@dataclass(frozen=True, slots=True)
class BadArgument:
    """A token that could not be converted to its parameter's type."""

    argument: ArgumentDescriptor
    token: str
    reason: str

    def __str__(self) -> str:
        return f"{self.argument.name}: expected {self.argument.type.value}, got {self.token!r}"


@dataclass(frozen=True, slots=True)
class BindResult:
    """Converted values in declaration order, or the arguments that failed."""

    values: tuple[Any, ...] = ()
    bad_arguments: tuple[BadArgument, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.bad_arguments


def has_correct_count(command: CommandDescriptor, count: int) -> bool:
    """Return True if *count* tokens can fill *command*'s parameters."""
    declared = len(command.arguments)
    if command.has_rest_argument:
        return count >= declared
    return count == declared


def bind(command: CommandDescriptor, tokens: Sequence[str]) -> BindResult:
    """Convert *tokens* into *command*'s typed arguments.

    The caller must check ``has_correct_count`` first. The rest parameter, if
    any, receives every token from its position onward as a list of strings.
    """
    if not has_correct_count(command, len(tokens)):
        msg = f"{len(tokens)} tokens do not fit command {command.name!r}"
        raise ValueError(msg)

    values: list[Any] = []
    bad: list[BadArgument] = []
    for argument in command.arguments:
        if argument.is_rest:
            values.append(list(tokens[argument.position :]))
            break
        token = tokens[argument.position]
        try:
            values.append(PARSERS[argument.type](token))
        except (ValueError, OverflowError) as exc:
            bad.append(BadArgument(argument, token, str(exc)))

    if bad:
        return BindResult(bad_arguments=tuple(bad))
    return BindResult(values=tuple(values))
