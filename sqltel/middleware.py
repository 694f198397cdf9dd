"""Composition of call middlewares, and the ping chain."""

from __future__ import annotations

from typing import Any, Callable, Sequence

from .recorder import MethodRecorder
from .telemetry import Context
from .tracer import MethodTracer

METRIC_METHOD_PING = "go.sql.ping"
TRACE_METHOD_PING = "ping"

Handler = Callable[..., Any]
Middleware = Callable[[Handler], Handler]


def chain_middlewares(middlewares: Sequence[Middleware], end: Handler) -> Handler:
    """Wrap ``end`` in the middlewares so that the first one runs outermost."""
    handler = end
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


def nop_ping(ctx: Context) -> None:
    """Ping nothing; only the context is checked."""
    if ctx is not None and not isinstance(ctx, Context):
        raise TypeError(f"ctx must be a Context, got {type(ctx).__name__}")


def ping_stats(recorder: MethodRecorder) -> Middleware:
    """Record call count and latency of ping."""

    def middleware(next_ping: Handler) -> Handler:
        def ping(ctx: Context) -> None:
            end = recorder.record(ctx, METRIC_METHOD_PING)
            try:
                next_ping(ctx)
            except Exception as exc:
                end(exc)
                raise
            end(None)

        return ping

    return middleware


def ping_trace(tracer: MethodTracer) -> Middleware:
    """Create a span around ping."""

    def middleware(next_ping: Handler) -> Handler:
        def ping(ctx: Context) -> None:
            ctx, end = tracer.trace(ctx, TRACE_METHOD_PING)
            try:
                next_ping(ctx)
            except Exception as exc:
                end(exc)
                raise
            end(None)

        return ping

    return middleware


def make_ping_middlewares(recorder: MethodRecorder, tracer: MethodTracer | None) -> list[Middleware]:
    """Statistics always; a span only when a tracer is given."""
    middlewares = [ping_stats(recorder)]
    if tracer is not None:
        middlewares.append(ping_trace(tracer))
    return middlewares