"""Transactions whose commit and rollback are recorded and traced."""

from __future__ import annotations

from typing import Any, Callable

from .middleware import Handler, Middleware, chain_middlewares
from .recorder import MethodRecorder
from .telemetry import Context
from .tracer import MethodTracer

METRIC_METHOD_COMMIT = "go.sql.commit"
TRACE_METHOD_COMMIT = "commit"
METRIC_METHOD_ROLLBACK = "go.sql.rollback"
TRACE_METHOD_ROLLBACK = "rollback"


class Transaction:
    """A transaction with instrumented commit and rollback."""

    def __init__(self, commit: Callable[[], Any], rollback: Callable[[], Any]) -> None:
        self._commit = commit
        self._rollback = rollback

    def commit(self) -> Any:
        return self._commit()

    def rollback(self) -> Any:
        return self._rollback()


def _tx_stats(ctx: Context, recorder: MethodRecorder, method: str) -> Middleware:
    def middleware(next_call: Handler) -> Handler:
        def call() -> Any:
            end = recorder.record(ctx, method)
            try:
                outcome = next_call()
            except Exception as exc:
                end(exc)
                raise
            end(None)
            return outcome

        return call

    return middleware


def _tx_trace(ctx: Context, tracer: MethodTracer, method: str) -> Middleware:
    def middleware(next_call: Handler) -> Handler:
        def call() -> Any:
            _, end = tracer.must_trace(ctx, method)
            try:
                outcome = next_call()
            except Exception as exc:
                end(exc)
                raise
            end(None)
            return outcome

        return call

    return middleware


def make_tx_middlewares(
    ctx: Context, recorder: MethodRecorder, tracer: MethodTracer | None, metric_method: str, trace_method: str
) -> list[Middleware]:
    """Statistics always; a span only when a tracer is given."""
    middlewares = [_tx_stats(ctx, recorder, metric_method)]
    if tracer is not None:
        middlewares.append(_tx_trace(ctx, tracer, trace_method))
    return middlewares


def wrap_tx(ctx: Context, parent: Any, recorder: MethodRecorder, tracer: MethodTracer | None) -> Transaction:
    """Wrap a driver transaction, keeping only the span context of ``ctx``."""
    ctx = Context().with_span_context(ctx.span_context)
    return Transaction(
        commit=chain_middlewares(
            make_tx_middlewares(ctx, recorder, tracer, METRIC_METHOD_COMMIT, TRACE_METHOD_COMMIT), parent.commit
        ),
        rollback=chain_middlewares(
            make_tx_middlewares(ctx, recorder, tracer, METRIC_METHOD_ROLLBACK, TRACE_METHOD_ROLLBACK),
            parent.rollback,
        ),
    )