"""Command registry: declared handlers and the name lookup table of one scope."""

from __future__ import annotations

import inspect
import logging
import sys
import typing
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import FrameType, MappingProxyType, SimpleNamespace
from typing import TYPE_CHECKING, Any, TypeVar

from guilded_commands.commands.arguments import (
    ArgumentDescriptor,
    ArgumentType,
    argument_type_for,
)
from guilded_commands.errors import (
    DuplicateNameError,
    InvalidRestPositionError,
    RegistrationError,
    UnsupportedArgumentTypeError,
)

if TYPE_CHECKING:
    from guilded_commands.commands.failures import FailedCommandEvent

logger = logging.getLogger(__name__)

CommandCallback = Callable[..., Any]
FallbackCallback = Callable[["FailedCommandEvent"], Any]

_F = TypeVar("_F")

_SPEC_ATTR = "__command_spec__"
_FALLBACK_ATTR = "__command_fallback__"


@dataclass(frozen=True, slots=True)
class _CommandSpec:
    name: str
    aliases: tuple[str, ...]
    description: str
    namespace: Mapping[str, Any] = field(default_factory=dict, compare=False)


def _declaring_namespace(frame: FrameType | None) -> dict[str, Any]:
    """Local names visible where a command is declared.

    Collects the enclosing class bodies and the first enclosing function, so
    string annotations may name aliases defined there. Module globals are
    resolved separately from the handler's ``__globals__``.
    """
    namespace: dict[str, Any] = {}
    while frame is not None and frame.f_locals is not frame.f_globals:
        local_names = dict(frame.f_locals)
        for key, value in local_names.items():
            namespace.setdefault(key, value)
        if "__qualname__" not in local_names or "__module__" not in local_names:
            break
        frame = frame.f_back
    return namespace


def command(
    name: str | Callable[..., Any] | None = None,
    *,
    aliases: Sequence[str] = (),
    description: str = "",
) -> Any:
    """Declare a method (command) or a nested ``CommandContainer`` (sub-commands).

    Usable bare (``@command``) or with arguments (``@command("xp", aliases=["exp"])``).
    The name defaults to the decorated object's ``__name__``.
    """
    namespace = _declaring_namespace(sys._getframe(1))

    def decorator(target: _F) -> _F:
        spec_name = name if isinstance(name, str) else target.__name__  # type: ignore[attr-defined]
        # Own docstring only, never the base class's.
        doc = description or inspect.cleandoc(target.__doc__ or "").split("\n", 1)[0]  # type: ignore[attr-defined]
        setattr(target, _SPEC_ATTR, _CommandSpec(spec_name, tuple(aliases), doc, namespace))
        return target

    if callable(name):
        return decorator(name)
    return decorator


def command_fallback(func: _F) -> _F:
    """Mark a container method as receiver of that scope's failed commands."""
    setattr(func, _FALLBACK_ATTR, True)
    return func


@dataclass(frozen=True, slots=True)
class CommandDescriptor:
    """An invocable command. Immutable once built."""

    name: str
    callback: CommandCallback
    arguments: tuple[ArgumentDescriptor, ...] = ()
    aliases: frozenset[str] = frozenset()
    has_rest_argument: bool = False
    variadic_rest: bool = False
    description: str = ""

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *sorted(self.aliases))


@dataclass(frozen=True, slots=True)
class CommandContainerDescriptor:
    """A named namespace of sub-commands backed by a container instance."""

    name: str
    instance: CommandContainer
    aliases: frozenset[str] = frozenset()
    description: str = ""

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *sorted(self.aliases))

    @property
    def registry(self) -> CommandRegistry:
        return self.instance.commands


CommandEntry = CommandDescriptor | CommandContainerDescriptor


def _validate_name(name: str) -> None:
    if not name or any(ch.isspace() for ch in name):
        msg = f"Invalid command name {name!r}: must be non-empty without whitespace"
        raise RegistrationError(msg)


def _arguments_from_types(
    name: str, argument_types: Sequence[Any]
) -> tuple[tuple[ArgumentDescriptor, ...], bool]:
    arguments: list[ArgumentDescriptor] = []
    for position, annotation in enumerate(argument_types):
        tag = argument_type_for(annotation)
        if tag is ArgumentType.REST and position != len(argument_types) - 1:
            msg = f"Command {name!r}: rest argument can only be the last parameter"
            raise InvalidRestPositionError(msg)
        arguments.append(ArgumentDescriptor(f"arg{position}", tag, position))
    has_rest = bool(arguments) and arguments[-1].is_rest
    return tuple(arguments), has_rest


def _resolve_annotation(
    name: str,
    callback: CommandCallback,
    param: inspect.Parameter,
    namespace: Mapping[str, Any],
) -> Any:
    """Resolve one parameter's annotation. Unannotated parameters are strings.

    Only argument parameters are resolved, so the event parameter may be
    annotated with a name imported under ``TYPE_CHECKING``.
    """
    annotation = param.annotation
    if annotation is inspect.Parameter.empty:
        return str
    if not isinstance(annotation, str):
        return annotation
    func = inspect.unwrap(getattr(callback, "__func__", callback))
    holder = SimpleNamespace(__annotations__={param.name: annotation})
    try:
        hints = typing.get_type_hints(
            holder,
            globalns=getattr(func, "__globals__", {}),
            localns=dict(namespace),
            include_extras=True,
        )
    except NameError as exc:
        msg = f"Command {name!r}: cannot resolve annotation of {param.name!r} ({exc})"
        raise UnsupportedArgumentTypeError(msg) from exc
    return hints[param.name]


def _arguments_from_signature(
    name: str, callback: CommandCallback, namespace: Mapping[str, Any]
) -> tuple[tuple[ArgumentDescriptor, ...], bool, bool]:
    params = list(inspect.signature(callback).parameters.values())
    if not params or params[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        msg = f"Command {name!r} must take the command event as its first positional parameter"
        raise RegistrationError(msg)

    arguments: list[ArgumentDescriptor] = []
    variadic = False
    for param in params[1:]:
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            continue
        if param.kind is inspect.Parameter.KEYWORD_ONLY:
            # Never filled from tokens, so it only needs a default.
            if param.default is inspect.Parameter.empty:
                msg = f"Command {name!r}: keyword-only parameter {param.name!r} needs a default"
                raise RegistrationError(msg)
            continue
        if arguments and arguments[-1].is_rest:
            msg = f"Command {name!r}: rest argument can only be the last parameter"
            raise InvalidRestPositionError(msg)

        annotation = _resolve_annotation(name, callback, param, namespace)
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            if annotation is not str:
                msg = f"Command {name!r}: *{param.name} must be annotated as str"
                raise UnsupportedArgumentTypeError(msg)
            tag = ArgumentType.REST
            variadic = True
        else:
            tag = argument_type_for(annotation)
        arguments.append(ArgumentDescriptor(param.name, tag, len(arguments)))

    has_rest = bool(arguments) and arguments[-1].is_rest
    return tuple(arguments), has_rest, variadic


def describe_command(
    name: str,
    callback: CommandCallback,
    *,
    aliases: Iterable[str] = (),
    argument_types: Sequence[Any] | None = None,
    description: str = "",
    namespace: Mapping[str, Any] | None = None,
) -> CommandDescriptor:
    """Build a ``CommandDescriptor``.

    With *argument_types* (``ArgumentType`` tags or annotations) the callback
    is taken as-is. Otherwise its signature is introspected: the first
    parameter receives the command event, the remaining ones are arguments.
    String annotations resolve against *namespace* (pass ``locals()`` for
    aliases defined in a function), then the callback's module globals.
    """
    _validate_name(name)
    alias_set = frozenset(aliases)
    for alias in alias_set:
        _validate_name(alias)

    if argument_types is not None:
        arguments, has_rest = _arguments_from_types(name, argument_types)
        variadic = False
    else:
        arguments, has_rest, variadic = _arguments_from_signature(
            name, callback, namespace or {}
        )

    return CommandDescriptor(
        name=name,
        callback=callback,
        arguments=arguments,
        aliases=alias_set,
        has_rest_argument=has_rest,
        variadic_rest=variadic,
        description=description,
    )


@dataclass(frozen=True, slots=True)
class _Table:
    lookup: MappingProxyType[str, CommandEntry]
    entries: tuple[CommandEntry, ...]
    fallbacks: tuple[FallbackCallback, ...] = field(default=())


class CommandRegistry:
    """Immutable name and alias lookup for one dispatch scope.

    Duplicate names or aliases within the scope raise ``DuplicateNameError``
    on construction. Lookup is exact and case-sensitive.
    """

    __slots__ = ("_table",)

    def __init__(
        self,
        entries: Iterable[CommandEntry] = (),
        fallbacks: Iterable[FallbackCallback] = (),
    ) -> None:
        entry_list = tuple(entries)
        lookup: dict[str, CommandEntry] = {}
        for entry in entry_list:
            for key in entry.names:
                existing = lookup.get(key)
                if existing is not None:
                    msg = f"{key!r} is used by both {existing.name!r} and {entry.name!r}"
                    raise DuplicateNameError(msg)
                lookup[key] = entry
        self._table = _Table(MappingProxyType(lookup), entry_list, tuple(fallbacks))

    @classmethod
    def from_container(cls, container: CommandContainer) -> CommandRegistry:
        """Discover ``@command`` members of *container* (and nested containers)."""
        entries: list[CommandEntry] = []
        fallbacks: list[FallbackCallback] = []
        seen: set[str] = set()
        for klass in type(container).__mro__:
            if klass in (CommandContainer, object):
                continue
            for attr_name, raw in vars(klass).items():
                if attr_name in seen:
                    continue
                seen.add(attr_name)
                if inspect.isclass(raw):
                    spec = vars(raw).get(_SPEC_ATTR)
                    if spec is None:
                        continue
                    if not issubclass(raw, CommandContainer):
                        msg = f"{raw.__qualname__} is declared a command but is not a CommandContainer"
                        raise RegistrationError(msg)
                    _validate_name(spec.name)
                    entries.append(
                        CommandContainerDescriptor(
                            name=spec.name,
                            instance=raw(),
                            aliases=frozenset(spec.aliases),
                            description=spec.description,
                        )
                    )
                    continue
                func = raw.__func__ if isinstance(raw, (staticmethod, classmethod)) else raw
                spec = getattr(func, _SPEC_ATTR, None)
                if isinstance(spec, _CommandSpec):
                    entries.append(
                        describe_command(
                            spec.name,
                            getattr(container, attr_name),
                            aliases=spec.aliases,
                            description=spec.description,
                            namespace=spec.namespace,
                        )
                    )
                if getattr(func, _FALLBACK_ATTR, False):
                    fallbacks.append(getattr(container, attr_name))

        registry = cls(entries, fallbacks)
        logger.debug(
            "Registered %d commands for %s", len(registry), type(container).__qualname__
        )
        return registry

    def resolve(self, name: str) -> CommandEntry | None:
        """Return the command or container registered under *name*, or None."""
        return self._table.lookup.get(name)

    @property
    def entries(self) -> tuple[CommandEntry, ...]:
        return self._table.entries

    @property
    def fallbacks(self) -> tuple[FallbackCallback, ...]:
        return self._table.fallbacks

    def __contains__(self, name: object) -> bool:
        return name in self._table.lookup

    def __iter__(self) -> Iterator[CommandEntry]:
        return iter(self._table.entries)

    def __len__(self) -> int:
        return len(self._table.entries)


class CommandContainer:
    """Base for objects holding ``@command`` methods.

    The scope's registry is built on construction, so malformed declarations
    fail before any message is processed. Nested subclasses decorated with
    ``@command`` become sub-command containers and must be constructible
    without arguments.
    """

    def __init__(self) -> None:
        self.commands = CommandRegistry.from_container(self)
