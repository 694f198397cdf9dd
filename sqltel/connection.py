"""Connections whose calls run through instrumentation middlewares."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .begin import TxOptions, ensure_begin
from .execute import skipped_exec
from .middleware import Middleware, chain_middlewares, nop_ping
from .prepare import ensure_prepare
from .query import skipped_query
from .telemetry import Context
from .values import NamedValue

_PASSED_THROUGH = ("check_named_value", "reset_session")


@dataclass(frozen=True)
class ConnConfig:
    """Middlewares for each connection call."""

    ping_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    exec_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    query_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    begin_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    prepare_middlewares: Sequence[Middleware] = field(default_factory=tuple)


def _deprecated(method: str, replacement: str) -> RuntimeError:
    return RuntimeError(f"sqltel: {method} is deprecated, use {replacement}")


class Connection:
    """A driver connection with instrumented calls.

    Execution and queries a driver does not support raise SkipError.
    """

    def __init__(self, parent: Any, config: ConnConfig) -> None:
        self._ping = nop_ping
        self._exec = skipped_exec
        self._query = skipped_query
        self._close = parent.close

        ping = getattr(parent, "ping", None)
        if callable(ping):
            self._ping = chain_middlewares(config.ping_middlewares, ping)
        exec_context = getattr(parent, "exec_context", None)
        if callable(exec_context):
            self._exec = chain_middlewares(config.exec_middlewares, exec_context)
        query_context = getattr(parent, "query_context", None)
        if callable(query_context):
            self._query = chain_middlewares(config.query_middlewares, query_context)

        self._begin = chain_middlewares(config.begin_middlewares, ensure_begin(parent))
        self._prepare = chain_middlewares(config.prepare_middlewares, ensure_prepare(parent))

    def ping(self, ctx: Context) -> None:
        self._ping(ctx)

    def exec(self, query: str, args: Sequence[Any] | None) -> Any:
        """Always fails: execution goes through exec_context."""
        error = _deprecated("exec", "exec_context")
        raise error

    def exec_context(self, ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
        return self._exec(ctx, query, args)

    def query(self, query: str, args: Sequence[Any] | None) -> Any:
        """Always fails: queries go through query_context."""
        error = _deprecated("query", "query_context")
        raise error

    def query_context(self, ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
        return self._query(ctx, query, args)

    def prepare(self, query: str) -> Any:
        return self._prepare(Context(), query)

    def prepare_context(self, ctx: Context, query: str) -> Any:
        return self._prepare(ctx, query)

    def begin(self) -> Any:
        return self._begin(Context(), TxOptions())

    def begin_tx(self, ctx: Context, opts: TxOptions) -> Any:
        return self._begin(ctx, opts)

    def close(self) -> Any:
        return self._close()

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def wrap_conn(parent: Any, config: ConnConfig) -> Connection:
    """Wrap a driver connection, keeping its value checker and session resetter."""
    conn = Connection(parent, config)
    for name in _PASSED_THROUGH:
        method = getattr(parent, name, None)
        if callable(method):
            setattr(conn, name, method)
    return conn