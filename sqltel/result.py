"""Results of executed statements, with optional spans on their accessors."""

from __future__ import annotations

from typing import Any, Callable

from .telemetry import Context
from .tracer import MethodTracer

TRACE_METHOD_LAST_INSERT_ID = "last_insert_id"
TRACE_METHOD_ROWS_AFFECTED = "rows_affected"


class Result:
    """An execution result whose accessors may be traced."""

    def __init__(self, last_insert_id: Callable[[], int], rows_affected: Callable[[], int]) -> None:
        self._last_insert_id = last_insert_id
        self._rows_affected = rows_affected

    def last_insert_id(self) -> int:
        return self._last_insert_id()

    def rows_affected(self) -> int:
        return self._rows_affected()


def _traced(ctx: Context, tracer: MethodTracer, method: str, func: Callable[[], int]) -> Callable[[], int]:
    def call() -> int:
        _, end = tracer.must_trace(ctx, method)
        try:
            value = func()
        except Exception as exc:
            end(exc)
            raise
        end(None)
        return value

    return call


def wrap_result(
    ctx: Context,
    parent: Any,
    tracer: MethodTracer,
    trace_last_insert_id: bool,
    trace_rows_affected: bool,
) -> Any:
    """Wrap a result so the chosen accessors create spans; untouched when none are chosen."""
    if not trace_last_insert_id and not trace_rows_affected:
        return parent

    ctx = Context().with_span_context(ctx.span_context)
    last_insert_id = parent.last_insert_id
    rows_affected = parent.rows_affected

    if trace_last_insert_id:
        last_insert_id = _traced(ctx, tracer, TRACE_METHOD_LAST_INSERT_ID, parent.last_insert_id)
    if trace_rows_affected:
        rows_affected = _traced(ctx, tracer, TRACE_METHOD_ROWS_AFFECTED, parent.rows_affected)

    return Result(last_insert_id, rows_affected)