"""Span creation around database calls."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence

from .attribute import DB_OPERATION, DB_STATEMENT, KeyValue, from_named_value
from .telemetry import Context, SpanKind, StatusCode, Tracer
from .values import NamedValue, SkipError

EndFunc = Callable[..., None]


def format_span_name(ctx: Context, method: str) -> str:
    """Default span name: the method prefixed with ``sql:``."""
    return "sql:" + method


def span_status_from_error(err: BaseException | None) -> tuple[StatusCode, str]:
    """OK for no error, ERROR with the message otherwise."""
    if err is None:
        return StatusCode.OK, ""
    return StatusCode.ERROR, str(err)


def span_status_from_error_ignore_err_skip(err: BaseException | None) -> tuple[StatusCode, str]:
    """Like span_status_from_error, but a SkipError counts as OK."""
    if err is None or isinstance(err, SkipError):
        return StatusCode.OK, ""
    return StatusCode.ERROR, str(err)


def trace_no_query(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> list[KeyValue]:
    """Add nothing about the query; the query must still be text."""
    if not isinstance(query, str):
        raise TypeError(f"query must be a string, got {type(query).__name__}")
    return []


def trace_query_without_args(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> list[KeyValue]:
    """Add the statement text only."""
    return [KeyValue(DB_STATEMENT, query)]


def trace_query_with_args(ctx: Context, query: str, args: Sequence[NamedValue] | None) -> list[KeyValue]:
    """Add the statement text and every argument."""
    return [KeyValue(DB_STATEMENT, query), *(from_named_value(arg) for arg in args or ())]


def _check_attributes(attributes: Iterable[Any]) -> None:
    for attr in attributes:
        if not isinstance(attr, KeyValue):
            raise TypeError(f"span attributes must be KeyValue, got {type(attr).__name__}")


def _untraced_end(err: BaseException | None = None, *attributes: KeyValue) -> None:
    _check_attributes(attributes)


class MethodTracer:
    """Creates client spans for database methods."""

    def __init__(
        self,
        tracer: Tracer,
        *,
        allow_root: bool = False,
        attributes: Iterable[KeyValue] = (),
        format_span_name: Callable[[Context, str], str] = format_span_name,
        error_to_status: Callable[[Any], tuple[StatusCode, str]] = span_status_from_error,
    ) -> None:
        self.tracer = tracer
        self.allow_root = allow_root
        self.attributes = tuple(attributes)
        self.format_span_name = format_span_name
        self.error_to_status = error_to_status

    def should_trace(self, ctx: Context) -> tuple[bool, bool]:
        """Whether to trace, and whether the context already has a span."""
        has_span = ctx.span_context.is_valid()
        return self.allow_root or has_span, has_span

    def trace(self, ctx: Context, method: str, *labels: KeyValue) -> tuple[Context, EndFunc]:
        """Start a span if allowed; a root span's context is handed back, a child's is not."""
        should, has_parent = self.should_trace(ctx)
        if not should:
            return ctx, _untraced_end
        new_ctx, end = self.must_trace(ctx, method, *labels)
        if not has_parent:
            ctx = new_ctx
        return ctx, end

    def must_trace(self, ctx: Context, method: str, *labels: KeyValue) -> tuple[Context, EndFunc]:
        """Always start a span and return a function that ends it."""
        new_ctx, span = self.tracer.start(ctx, self.format_span_name(ctx, method), SpanKind.CLIENT)
        base = [*self.attributes, *labels, KeyValue(DB_OPERATION, method)]

        def end(err: BaseException | None = None, *extra: KeyValue) -> None:
            _check_attributes(extra)
            code, description = self.error_to_status(err)
            span.set_attributes(*base, *extra)
            span.set_status(code, description)
            if code is StatusCode.ERROR:
                span.record_error(err)
            span.end()

        return new_ctx, end


def tracer_or_none(tracer: MethodTracer | None, should_trace: bool) -> MethodTracer | None:
    """The tracer when tracing is wanted, otherwise None."""
    return tracer if should_trace else None