"""Result rows, with optional spans on fetching and closing."""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Any, Callable, Iterator, Sequence

from .attribute import DB_SQL_ROWS_NEXT_LATENCY_AVG, DB_SQL_ROWS_NEXT_SUCCESS_COUNT, KeyValue, key_value_duration
from .telemetry import Context
from .tracer import MethodTracer

TRACE_METHOD_ROWS_NEXT = "rows_next"
TRACE_METHOD_ROWS_CLOSE = "rows_close"

_OPTIONAL_METHODS = (
    "has_next_result_set",
    "next_result_set",
    "column_type_database_type_name",
    "column_type_length",
    "column_type_nullable",
    "column_type_precision_scale",
)


class Rows:
    """Rows of a query; ``next_row`` returns None once they are exhausted."""

    def __init__(
        self,
        columns: Callable[[], list[str]],
        close: Callable[[], Any],
        next_row: Callable[[], Sequence[Any] | None],
        *,
        has_next_result_set: Callable[[], bool] | None = None,
        next_result_set: Callable[[], Any] | None = None,
        column_type_database_type_name: Callable[[int], str] | None = None,
        column_type_length: Callable[[int], int | None] | None = None,
        column_type_nullable: Callable[[int], bool | None] | None = None,
        column_type_precision_scale: Callable[[int], tuple[int, int] | None] | None = None,
    ) -> None:
        self._columns = columns
        self._close = close
        self._next_row = next_row
        self._has_next_result_set = has_next_result_set or (lambda: False)
        self._next_result_set = next_result_set
        self._database_type_name = column_type_database_type_name or (lambda index: "")
        self._length = column_type_length or (lambda index: None)
        self._nullable = column_type_nullable or (lambda index: None)
        self._precision_scale = column_type_precision_scale or (lambda index: None)

    def columns(self) -> list[str]:
        return self._columns()

    def close(self) -> Any:
        return self._close()

    def next_row(self) -> Sequence[Any] | None:
        return self._next_row()

    def has_next_result_set(self) -> bool:
        return self._has_next_result_set()

    def next_result_set(self) -> Any:
        """Advance to the next result set; EOFError when the driver has none."""
        if self._next_result_set is None:
            raise EOFError("no more result sets")
        return self._next_result_set()

    def column_type_database_type_name(self, index: int) -> str:
        return self._database_type_name(index)

    def column_type_length(self, index: int) -> int | None:
        return self._length(index)

    def column_type_nullable(self, index: int) -> bool | None:
        return self._nullable(index)

    def column_type_precision_scale(self, index: int) -> tuple[int, int] | None:
        return self._precision_scale(index)

    def __iter__(self) -> Iterator[Sequence[Any]]:
        while (row := self.next_row()) is not None:
            yield row


class _SuccessCounter:
    """Counts rows fetched successfully and the time spent fetching them."""

    def __init__(self, next_row: Callable[[], Sequence[Any] | None]) -> None:
        self._next_row = next_row
        self.count = 0
        self._total_ns = 0

    @property
    def total(self) -> timedelta:
        return timedelta(microseconds=self._total_ns // 1000)

    def __call__(self) -> Sequence[Any] | None:
        start = time.perf_counter_ns()
        row = self._next_row()
        if row is not None:
            self.count += 1
            self._total_ns += time.perf_counter_ns() - start
        return row


def _trace_next(
    ctx: Context, tracer: MethodTracer, next_row: Callable[[], Sequence[Any] | None]
) -> Callable[[], Sequence[Any] | None]:
    def traced() -> Sequence[Any] | None:
        _, end = tracer.must_trace(ctx, TRACE_METHOD_ROWS_NEXT)
        try:
            row = next_row()
        except EOFError:
            end(None)
            raise
        except Exception as exc:
            end(exc)
            raise
        end(None)
        return row

    return traced


def _trace_close(
    ctx: Context, tracer: MethodTracer, counter: _SuccessCounter, close: Callable[[], Any]
) -> Callable[[], Any]:
    def traced() -> Any:
        _, end = tracer.must_trace(ctx, TRACE_METHOD_ROWS_CLOSE)
        try:
            outcome = close()
        except Exception as exc:
            end(exc, *rows_close_attributes(counter.count, counter.total))
            raise
        end(None, *rows_close_attributes(counter.count, counter.total))
        return outcome

    return traced


def wrap_rows(ctx: Context, parent: Any, tracer: MethodTracer, trace_rows_next: bool, trace_rows_close: bool) -> Any:
    """Wrap rows so fetching and closing create spans; untouched when neither is chosen."""
    if not trace_rows_next and not trace_rows_close:
        return parent

    ctx = Context().with_span_context(ctx.span_context)
    next_row = parent.next_row
    close = parent.close

    if trace_rows_close:
        counter = _SuccessCounter(next_row)
        next_row = counter
        close = _trace_close(ctx, tracer, counter, parent.close)

    if trace_rows_next:
        next_row = _trace_next(ctx, tracer, next_row)

    optional = {
        name: method for name in _OPTIONAL_METHODS if callable(method := getattr(parent, name, None))
    }
    rows = Rows(parent.columns, close, next_row, **optional)

    scan_type = getattr(parent, "column_type_scan_type", None)
    if callable(scan_type):
        rows.column_type_scan_type = scan_type
    return rows


def rows_close_attributes(count: int, total_time: timedelta) -> list[KeyValue]:
    """Attributes for closing rows: fetched count and, if any, average fetch latency."""
    attrs = [KeyValue(DB_SQL_ROWS_NEXT_SUCCESS_COUNT, count)]
    if count < 1:
        return attrs
    attrs.append(key_value_duration(DB_SQL_ROWS_NEXT_LATENCY_AVG, total_time // count))
    return attrs