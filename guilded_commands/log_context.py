"""Logging context: ContextVar-based log enrichment for dispatched commands.

Every log record is enriched with a ``[op:channel:command]`` prefix via a
`ContextFilter` attached to the root logger handlers.

Operation codes: ``cmd`` (command dispatch), ``ws`` (socket event), ``rest`` (REST call).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token

# Copied into every task spawned per message, so concurrent commands never share values.
ctx_operation: ContextVar[str | None] = ContextVar("ctx_operation", default=None)
ctx_channel_id: ContextVar[str | None] = ContextVar("ctx_channel_id", default=None)
ctx_command: ContextVar[str | None] = ContextVar("ctx_command", default=None)


class ContextFilter(logging.Filter):
    """Inject ContextVar values into every LogRecord as ``record.ctx``."""

    def filter(self, record: logging.LogRecord) -> bool:
        op = ctx_operation.get(None)
        channel = ctx_channel_id.get(None)
        command = ctx_command.get(None)
        parts: list[str] = []
        if op:
            parts.append(op)
        if channel:
            parts.append(channel[:8])
        if command:
            parts.append(command)
        record.ctx = f"[{':'.join(parts)}] " if parts else ""
        return True


@contextmanager
def log_context(
    *,
    operation: str | None = None,
    channel_id: str | None = None,
    command: str | None = None,
) -> Iterator[None]:
    """Set logging context for the duration of a block.

    Only the given values are changed; the previous ones are restored on exit,
    so callers (the socket owner, a handler awaiting a REST call) keep their
    own context.
    """
    tokens: list[Token[str | None]] = []
    for var, value in (
        (ctx_operation, operation),
        (ctx_channel_id, channel_id),
        (ctx_command, command),
    ):
        if value is not None:
            tokens.append(var.set(value))
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)
