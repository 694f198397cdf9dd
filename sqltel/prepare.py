"""Middlewares around preparing statements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from .middleware import Handler, Middleware
from .recorder import MethodRecorder
from .statement import StmtConfig, wrap_stmt
from .telemetry import Context
from .tracer import MethodTracer, trace_no_query

METRIC_METHOD_PREPARE = "go.sql.prepare"
TRACE_METHOD_PREPARE = "prepare"


@dataclass(frozen=True)
class PrepareConfig:
    """Query attributes for the prepare span and the middlewares of prepared statements."""

    query_tracer: Callable[..., list] = trace_no_query
    exec_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    exec_context_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    query_middlewares: Sequence[Middleware] = field(default_factory=tuple)
    query_context_middlewares: Sequence[Middleware] = field(default_factory=tuple)


def ensure_prepare(conn: Any) -> Handler:
    """The connection's ``prepare_context``, or a wrapper calling its plain ``prepare``."""
    prepare_context = getattr(conn, "prepare_context", None)
    if callable(prepare_context):
        return prepare_context

    def prepare(ctx: Context, query: str) -> Any:
        return conn.prepare(query)

    return prepare


def prepare_stats(recorder: MethodRecorder) -> Middleware:
    """Record call count and latency of prepare."""

    def middleware(next_prepare: Handler) -> Handler:
        def prepare(ctx: Context, query: str) -> Any:
            end = recorder.record(ctx, METRIC_METHOD_PREPARE)
            try:
                stmt = next_prepare(ctx, query)
            except Exception as exc:
                end(exc)
                raise
            end(None)
            return stmt

        return prepare

    return middleware


def prepare_trace(tracer: MethodTracer, query_tracer: Callable[..., list]) -> Middleware:
    """Create a span around prepare."""

    def middleware(next_prepare: Handler) -> Handler:
        def prepare(ctx: Context, query: str) -> Any:
            ctx, end = tracer.trace(ctx, TRACE_METHOD_PREPARE)
            try:
                stmt = next_prepare(ctx, query)
            except Exception as exc:
                end(exc, *query_tracer(ctx, query, None))
                raise
            end(None, *query_tracer(ctx, query, None))
            return stmt

        return prepare

    return middleware


def prepare_wrap_result(
    exec_middlewares: Sequence[Middleware],
    exec_context_middlewares: Sequence[Middleware],
    query_middlewares: Sequence[Middleware],
    query_context_middlewares: Sequence[Middleware],
) -> Middleware:
    """Wrap the prepared statement so its calls run through the given middlewares."""

    def middleware(next_prepare: Handler) -> Handler:
        def prepare(ctx: Context, query: str) -> Any:
            stmt = next_prepare(ctx, query)
            return wrap_stmt(
                stmt,
                StmtConfig(
                    query=query,
                    exec_middlewares=exec_middlewares,
                    exec_context_middlewares=exec_context_middlewares,
                    query_middlewares=query_middlewares,
                    query_context_middlewares=query_context_middlewares,
                ),
            )

        return prepare

    return middleware


def make_prepare_middlewares(recorder: MethodRecorder, tracer: MethodTracer, config: PrepareConfig) -> list[Middleware]:
    """Statistics, span and statement wrapping, in that order."""
    return [
        prepare_stats(recorder),
        prepare_trace(tracer, config.query_tracer),
        prepare_wrap_result(
            config.exec_middlewares,
            config.exec_context_middlewares,
            config.query_middlewares,
            config.query_context_middlewares,
        ),
    ]