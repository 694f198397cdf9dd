"""Middlewares around statement execution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from .middleware import Handler, Middleware
from .options import DriverOptions
from .recorder import MethodRecorder
from .result import wrap_result
from .telemetry import Context, context_with_query
from .tracer import MethodTracer, trace_no_query
from .values import NamedValue, SkipError

METRIC_METHOD_EXEC = "go.sql.exec"
TRACE_METHOD_EXEC = "exec"


@dataclass(frozen=True)
class ExecConfig:
    """How an execution chain records and traces."""

    metric_method: str
    trace_method: str
    query_tracer: Callable[..., list] = trace_no_query
    trace_last_insert_id: bool = False
    trace_rows_affected: bool = False


def _check_call(ctx: Any, query: Any) -> None:
    if ctx is not None and not isinstance(ctx, Context):
        raise TypeError(f"ctx must be a Context, got {type(ctx).__name__}")
    if not isinstance(query, str):
        raise TypeError(f"query must be a string, got {type(query).__name__}")


def nop_exec(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> None:
    """Execute nothing; only the call is checked."""
    _check_call(ctx, query)


def skipped_exec(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
    """Always report the call as unsupported."""
    _check_call(ctx, query)
    raise SkipError(f"driver does not support exec: {query}")


def exec_stats(recorder: MethodRecorder, method: str) -> Middleware:
    """Record call count and latency of execution."""

    def middleware(next_exec: Handler) -> Handler:
        def execute(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
            end = recorder.record(ctx, method)
            try:
                result = next_exec(ctx, query, args)
            except Exception as exc:
                end(exc)
                raise
            end(None)
            return result

        return execute

    return middleware


def exec_trace(tracer: MethodTracer, query_tracer: Callable[..., list], method: str) -> Middleware:
    """Create a span around execution, carrying the query in the context."""

    def middleware(next_exec: Handler) -> Handler:
        def execute(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
            ctx = context_with_query(ctx, query)
            ctx, end = tracer.trace(ctx, method)
            try:
                result = next_exec(ctx, query, args)
            except Exception as exc:
                end(exc, *query_tracer(ctx, query, args))
                raise
            end(None, *query_tracer(ctx, query, args))
            return result

        return execute

    return middleware


def exec_wrap_result(tracer: MethodTracer, trace_last_insert_id: bool, trace_rows_affected: bool) -> Middleware:
    """Wrap the result so its accessors may be traced."""

    def middleware(next_exec: Handler) -> Handler:
        def execute(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> Any:
            result = next_exec(ctx, query, args)
            should, _ = tracer.should_trace(ctx)
            return wrap_result(ctx, result, tracer, should and trace_last_insert_id, should and trace_rows_affected)

        return execute

    return middleware


def make_exec_middlewares(recorder: MethodRecorder, tracer: MethodTracer | None, config: ExecConfig) -> list[Middleware]:
    """Statistics always; span and result wrapping only when a tracer is given."""
    middlewares = [exec_stats(recorder, config.metric_method)]
    if tracer is None:
        return middlewares
    middlewares.append(exec_trace(tracer, config.query_tracer, config.trace_method))
    if config.trace_last_insert_id or config.trace_rows_affected:
        middlewares.append(exec_wrap_result(tracer, config.trace_last_insert_id, config.trace_rows_affected))
    return middlewares


def new_exec_config(options: DriverOptions, metric_method: str, trace_method: str) -> ExecConfig:
    """Execution settings taken from driver options."""
    return ExecConfig(
        metric_method=metric_method,
        trace_method=trace_method,
        query_tracer=options.trace.query_tracer,
        trace_last_insert_id=options.trace.last_insert_id,
        trace_rows_affected=options.trace.rows_affected,
    )