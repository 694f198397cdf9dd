"""Prepared statements whose execution and queries are recorded and traced."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .execute import nop_exec
from .middleware import Handler, Middleware, chain_middlewares
from .query import nop_query
from .telemetry import Context
from .values import NamedValue, named_values_to_values, values_to_named_values

METRIC_METHOD_STMT_EXEC = "go.sql.stmt.exec"
TRACE_METHOD_STMT_EXEC = "exec"
METRIC_METHOD_STMT_QUERY = "go.sql.stmt.query"
TRACE_METHOD_STMT_QUERY = "query"

_PASSED_THROUGH = ("column_converter", "check_named_value")


@dataclass(frozen=True)
class StmtConfig:
    """The query text and the middlewares of each statement call."""

    query: str = ""
    exec_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    exec_context_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    query_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    query_context_middlewares: Sequence[Middleware] = field(default_factory=tuple)


def _plain_exec(parent: Any, middlewares: Sequence[Middleware]) -> Handler:
    def call(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
        return parent.exec(named_values_to_values(args))

    return chain_middlewares(middlewares, call)


def _context_exec(parent: Any, middlewares: Sequence[Middleware]) -> Handler:
    exec_context = getattr(parent, "exec_context", None)
    if not callable(exec_context):
        return nop_exec

    def call(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
        return exec_context(ctx, args)

    return chain_middlewares(middlewares, call)


def _plain_query(parent: Any, middlewares: Sequence[Middleware]) -> Handler:
    def call(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
        return parent.query(named_values_to_values(args))

    return chain_middlewares(middlewares, call)


def _context_query(parent: Any, middlewares: Sequence[Middleware]) -> Handler:
    query_context = getattr(parent, "query_context", None)
    if not callable(query_context):
        return nop_query

    def call(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
        return query_context(ctx, args)

    return chain_middlewares(middlewares, call)


class Statement:
    """A prepared statement; calls without a context run under an empty one."""

    def __init__(self, parent: Any, config: StmtConfig) -> None:
        self.query_text = config.query
        self.supports_exec_context = callable(getattr(parent, "exec_context", None))
        self.supports_query_context = callable(getattr(parent, "query_context", None))
        self._exec = _plain_exec(parent, config.exec_middlewares)
        self._exec_context = _context_exec(parent, config.exec_context_middlewares)
        self._query = _plain_query(parent, config.query_middlewares)
        self._query_context = _context_query(parent, config.query_context_middlewares)
        self._close = parent.close
        self._num_input = parent.num_input

    def exec(self, args: Sequence[Any] | None) -> Any:
        return self._exec(Context(), self.query_text, values_to_named_values(args))

    def query(self, args: Sequence[Any] | None) -> Any:
        return self._query(Context(), self.query_text, values_to_named_values(args))

    def exec_context(self, ctx: Context, args: Sequence[NamedValue] | None) -> Any:
        return self._exec_context(ctx, self.query_text, args)

    def query_context(self, ctx: Context, args: Sequence[NamedValue] | None) -> Any:
        return self._query_context(ctx, self.query_text, args)

    def close(self) -> Any:
        return self._close()

    def num_input(self) -> int:
        return self._num_input()

    def __enter__(self) -> Statement:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def wrap_stmt(parent: Any, config: StmtConfig) -> Statement:
    """Wrap a driver statement, keeping its column converter and value checker."""
    stmt = Statement(parent, config)
    for name in _PASSED_THROUGH:
        method = getattr(parent, name, None)
        if callable(method):
            setattr(stmt, name, method)
    return stmt