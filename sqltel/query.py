"""Middlewares around queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from .middleware import Handler, Middleware
from .options import DriverOptions
from .recorder import MethodRecorder
from .rows import wrap_rows
from .telemetry import Context, context_with_query
from .tracer import MethodTracer, trace_no_query
from .values import NamedValue, SkipError

METRIC_METHOD_QUERY = "go.sql.query"
TRACE_METHOD_QUERY = "query"


@dataclass(frozen=True)
class QueryConfig:
    """How a query chain records and traces."""

    metric_method: str
    trace_method: str
    query_tracer: Callable[..., list] = trace_no_query
    trace_rows_next: bool = False
    trace_rows_close: bool = False


def _check_call(ctx: Any, query: Any) -> None:
    if ctx is not None and not isinstance(ctx, Context):
        raise TypeError(f"ctx must be a Context, got {type(ctx).__name__}")
    if not isinstance(query, str):
        raise TypeError(f"query must be a string, got {type(query).__name__}")


def nop_query(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> None:
    """Query nothing; only the call is checked."""
    _check_call(ctx, query)


def skipped_query(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
    """Always report the call as unsupported."""
    _check_call(ctx, query)
    raise SkipError(f"driver does not support query: {query}")


def query_stats(recorder: MethodRecorder, method: str) -> Middleware:
    """Record call count and latency of queries."""

    def middleware(next_query: Handler) -> Handler:
        def run(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
            end = recorder.record(ctx, method)
            try:
                rows = next_query(ctx, query, args)
            except Exception as exc:
                end(exc)
                raise
            end(None)
            return rows

        return run

    return middleware


def query_trace(tracer: MethodTracer, query_tracer: Callable[..., list], method: str) -> Middleware:
    """Create a span around a query, carrying the query in the context."""

    def middleware(next_query: Handler) -> Handler:
        def run(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
            ctx = context_with_query(ctx, query)
            ctx, end = tracer.trace(ctx, method)
            try:
                rows = next_query(ctx, query, args)
            except Exception as exc:
                end(exc, *query_tracer(ctx, query, args))
                raise
            end(None, *query_tracer(ctx, query, args))
            return rows

        return run

    return middleware


def query_wrap_rows(tracer: MethodTracer, trace_rows_next: bool, trace_rows_close: bool) -> Middleware:
    """Wrap the rows so fetching and closing may be traced."""

    def middleware(next_query: Handler) -> Handler:
        def run(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
            rows = next_query(ctx, query, args)
            should, _ = tracer.should_trace(ctx)
            return wrap_rows(ctx, rows, tracer, should and trace_rows_next, should and trace_rows_close)

        return run

    return middleware


def make_query_middlewares(recorder: MethodRecorder, tracer: MethodTracer | None, config: QueryConfig) -> list[Middleware]:
    """Statistics always; span and rows wrapping only when a tracer is given."""
    middlewares = [query_stats(recorder, config.metric_method)]
    if tracer is None:
        return middlewares
    middlewares.append(query_trace(tracer, config.query_tracer, config.trace_method))
    if config.trace_rows_next or config.trace_rows_close:
        middlewares.append(query_wrap_rows(tracer, config.trace_rows_next, config.trace_rows_close))
    return middlewares


def new_query_config(options: DriverOptions, metric_method: str, trace_method: str) -> QueryConfig:
    """Query settings taken from driver options."""
    return QueryConfig(
        metric_method=metric_method,
        trace_method=trace_method,
        query_tracer=options.trace.query_tracer,
        trace_rows_next=options.trace.rows_next,
        trace_rows_close=options.trace.rows_close,
    )