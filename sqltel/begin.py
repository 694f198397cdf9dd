"""Middlewares around beginning a transaction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .middleware import Handler, Middleware
from .recorder import MethodRecorder
from .telemetry import Context
from .tracer import MethodTracer, tracer_or_none
from .transaction import wrap_tx

METRIC_METHOD_BEGIN = "go.sql.begin"
TRACE_METHOD_BEGIN = "begin_transaction"


@dataclass(frozen=True)
class TxOptions:
    """Isolation level and read-only flag of a new transaction."""

    isolation: int = 0
    read_only: bool = False


def ensure_begin(conn: Any) -> Handler:
    """The connection's ``begin_tx``, or a wrapper calling its plain ``begin``."""
    begin_tx = getattr(conn, "begin_tx", None)
    if callable(begin_tx):
        return begin_tx

    def begin(ctx: Context, opts: TxOptions) -> Any:
        return conn.begin()

    return begin


def begin_stats(recorder: MethodRecorder) -> Middleware:
    """Record call count and latency of begin."""

    def middleware(next_begin: Handler) -> Handler:
        def begin(ctx: Context, opts: TxOptions) -> Any:
            end = recorder.record(ctx, METRIC_METHOD_BEGIN)
            try:
                tx = next_begin(ctx, opts)
            except Exception as exc:
                end(exc)
                raise
            end(None)
            return tx

        return begin

    return middleware


def begin_trace(tracer: MethodTracer) -> Middleware:
    """Create a span around begin."""

    def middleware(next_begin: Handler) -> Handler:
        def begin(ctx: Context, opts: TxOptions) -> Any:
            ctx, end = tracer.trace(ctx, TRACE_METHOD_BEGIN)
            try:
                tx = next_begin(ctx, opts)
            except Exception as exc:
                end(exc)
                raise
            end(None)
            return tx

        return begin

    return middleware


def begin_wrap_tx(recorder: MethodRecorder, tracer: MethodTracer) -> Middleware:
    """Wrap the new transaction so commit and rollback are instrumented."""

    def middleware(next_begin: Handler) -> Handler:
        def begin(ctx: Context, opts: TxOptions) -> Any:
            tx = next_begin(ctx, opts)
            should, _ = tracer.should_trace(ctx)
            return wrap_tx(ctx, tx, recorder, tracer_or_none(tracer, should))

        return begin

    return middleware


def make_begin_middlewares(recorder: MethodRecorder, tracer: MethodTracer) -> list[Middleware]:
    """Statistics, span and transaction wrapping, in that order."""
    return [begin_stats(recorder), begin_trace(tracer), begin_wrap_tx(recorder, tracer)]