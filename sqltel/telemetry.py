"""A small in-process tracing and metrics layer, plus query context helpers."""

from __future__ import annotations

import enum
import random
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from .attribute import KeyValue

DB_SQL_CLIENT_LATENCY_MS = "db.sql.client.latency"
DB_SQL_CLIENT_CALLS = "db.sql.client.calls"

DB_SQL_CONNECTIONS_OPEN = "db.sql.connections.open"
DB_SQL_CONNECTIONS_IDLE = "db.sql.connections.idle"
DB_SQL_CONNECTIONS_ACTIVE = "db.sql.connections.active"
DB_SQL_CONNECTIONS_WAIT_COUNT = "db.sql.connections.wait_count"
DB_SQL_CONNECTIONS_WAIT_DURATION = "db.sql.connections.wait_duration"
DB_SQL_CONNECTIONS_IDLE_CLOSED = "db.sql.connections.idle_closed"
DB_SQL_CONNECTIONS_LIFETIME_CLOSED = "db.sql.connections.lifetime_closed"

UNIT_MILLISECONDS = "ms"
UNIT_DIMENSIONLESS = "1"


def _new_id(bits: int) -> int:
    while True:
        value = random.getrandbits(bits)
        if value:
            return value


@dataclass(frozen=True)
class SpanContext:
    """Identity of a span; zero ids mean no span."""

    trace_id: int = 0
    span_id: int = 0

    def is_valid(self) -> bool:
        return self.trace_id != 0 and self.span_id != 0


class Context:
    """Immutable carrier of request-scoped values and the current span context."""

    __slots__ = ("_values", "_span_context")

    def __init__(self, values: Mapping[Any, Any] | None = None, span_context: SpanContext | None = None) -> None:
        self._values = MappingProxyType(dict(values or {}))
        self._span_context = span_context or SpanContext()

    @property
    def span_context(self) -> SpanContext:
        return self._span_context

    def with_value(self, key: Any, value: Any) -> Context:
        values = dict(self._values)
        values[key] = value
        return Context(values, self._span_context)

    def value(self, key: Any) -> Any:
        return self._values.get(key)

    def with_span_context(self, span_context: SpanContext) -> Context:
        return Context(self._values, span_context)


class StatusCode(enum.Enum):
    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


class SpanKind(enum.Enum):
    INTERNAL = "internal"
    SERVER = "server"
    CLIENT = "client"
    PRODUCER = "producer"
    CONSUMER = "consumer"


class Span:
    """A timed operation; recording spans report to their provider when ended."""

    def __init__(
        self,
        name: str,
        kind: SpanKind,
        context: SpanContext,
        parent: SpanContext | None = None,
        provider: TracerProvider | None = None,
        recording: bool = True,
    ) -> None:
        self.name = name
        self.kind = kind
        self.context = context
        self.parent = parent
        self.recording = recording
        self.attributes: dict[str, Any] = {}
        self.status: tuple[StatusCode, str] = (StatusCode.UNSET, "")
        self.errors: list[BaseException] = []
        self.start_time = time.time()
        self.end_time: float | None = None
        self._provider = provider

    @property
    def ended(self) -> bool:
        return self.end_time is not None

    def set_attributes(self, *attributes: KeyValue) -> None:
        if not self.recording:
            return
        for attribute in attributes:
            self.attributes[attribute.key] = attribute.value

    def set_status(self, code: StatusCode, description: str = "") -> None:
        if self.recording:
            self.status = (code, description)

    def record_error(self, err: BaseException) -> None:
        if self.recording:
            self.errors.append(err)

    def end(self) -> None:
        if self.end_time is not None:
            return
        self.end_time = time.time()
        if self.recording and self._provider is not None:
            self._provider._on_end(self)


class Tracer:
    """Starts spans under the current span context."""

    def __init__(
        self,
        provider: TracerProvider,
        name: str,
        version: str = "",
        schema_url: str = "",
        recording: bool = True,
    ) -> None:
        self.provider = provider
        self.name = name
        self.version = version
        self.schema_url = schema_url
        self._recording = recording

    def start(self, ctx: Context, name: str, kind: SpanKind = SpanKind.INTERNAL) -> tuple[Context, Span]:
        parent = ctx.span_context
        parent_or_none = parent if parent.is_valid() else None
        if not self._recording:
            return ctx, Span(name, kind, parent, parent_or_none, recording=False)
        trace_id = parent.trace_id if parent_or_none else _new_id(128)
        span_context = SpanContext(trace_id, _new_id(64))
        span = Span(name, kind, span_context, parent_or_none, self.provider)
        return ctx.with_span_context(span_context), span


class TracerProvider:
    """Hands out tracers and keeps the spans they finish."""

    def __init__(self) -> None:
        self.finished_spans: list[Span] = []
        self._lock = threading.Lock()

    def tracer(self, name: str, version: str = "", schema_url: str = "") -> Tracer:
        return Tracer(self, name, version, schema_url)

    def _on_end(self, span: Span) -> None:
        with self._lock:
            self.finished_spans.append(span)


class NoopTracerProvider(TracerProvider):
    """Hands out tracers whose spans record nothing."""

    def tracer(self, name: str, version: str = "", schema_url: str = "") -> Tracer:
        return Tracer(self, name, version, schema_url, recording=False)


class _Instrument:
    def __init__(self, name: str, unit: str = "", description: str = "", recording: bool = True) -> None:
        self.name = name
        self.unit = unit
        self.description = description
        self.measurements: list[tuple[Any, tuple[KeyValue, ...]]] = []
        self._recording = recording
        self._lock = threading.Lock()

    def _store(self, value: Any, attributes: Iterable[KeyValue]) -> None:
        if not self._recording:
            return
        with self._lock:
            self.measurements.append((value, tuple(attributes)))


class Histogram(_Instrument):
    """Records a distribution of values."""

    def record(self, ctx: Context, value: float, *attributes: KeyValue) -> None:
        self._store(value, attributes)


class Counter(_Instrument):
    """Accumulates a running sum."""

    def add(self, ctx: Context, value: int, *attributes: KeyValue) -> None:
        self._store(value, attributes)

    @property
    def total(self) -> int:
        return sum(value for value, _ in self.measurements)


class Gauge(_Instrument):
    """Holds values observed by a collection callback."""

    def observe(self, ctx: Context, value: float, *attributes: KeyValue) -> None:
        self._store(value, attributes)


class Meter:
    """Creates instruments and runs registered observation callbacks."""

    def __init__(self, name: str, recording: bool = True) -> None:
        self.name = name
        self._recording = recording
        self._instruments: dict[str, _Instrument] = {}
        self._callbacks: list[Callable[[Context], None]] = []
        self._lock = threading.Lock()

    def _instrument(self, kind: type, name: str, unit: str, description: str) -> Any:
        with self._lock:
            existing = self._instruments.get(name)
            if existing is not None:
                if not isinstance(existing, kind):
                    raise ValueError(f"instrument {name!r} already exists with a different kind")
                return existing
            created = kind(name, unit, description, self._recording)
            self._instruments[name] = created
            return created

    def histogram(self, name: str, unit: str = "", description: str = "") -> Histogram:
        return self._instrument(Histogram, name, unit, description)

    def counter(self, name: str, unit: str = "", description: str = "") -> Counter:
        return self._instrument(Counter, name, unit, description)

    def gauge(self, name: str, unit: str = "", description: str = "") -> Gauge:
        return self._instrument(Gauge, name, unit, description)

    def register_callback(self, instruments: Iterable[Gauge], callback: Callable[[Context], None]) -> None:
        for instrument in instruments:
            if not isinstance(instrument, Gauge) or self._instruments.get(instrument.name) is not instrument:
                raise ValueError(f"instrument {getattr(instrument, 'name', instrument)!r} is not an observable of this meter")
        with self._lock:
            self._callbacks.append(callback)

    def collect(self, ctx: Context | None = None) -> None:
        ctx = ctx if ctx is not None else Context()
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback(ctx)


class MeterProvider:
    """Hands out one meter per name."""

    def __init__(self) -> None:
        self._meters: dict[str, Meter] = {}
        self._lock = threading.Lock()

    def meter(self, name: str) -> Meter:
        with self._lock:
            return self._meters.setdefault(name, Meter(name))


class NoopMeterProvider(MeterProvider):
    """Hands out meters whose instruments keep nothing."""

    def meter(self, name: str) -> Meter:
        return Meter(name, recording=False)


_globals_lock = threading.Lock()
_tracer_provider: TracerProvider = NoopTracerProvider()
_meter_provider: MeterProvider = NoopMeterProvider()


def get_tracer_provider() -> TracerProvider:
    with _globals_lock:
        return _tracer_provider


def set_tracer_provider(provider: TracerProvider) -> None:
    global _tracer_provider
    with _globals_lock:
        _tracer_provider = provider


def get_meter_provider() -> MeterProvider:
    with _globals_lock:
        return _meter_provider


def set_meter_provider(provider: MeterProvider) -> None:
    global _meter_provider
    with _globals_lock:
        _meter_provider = provider


class _QueryKey:
    __slots__ = ()


_QUERY_KEY = _QueryKey()


def context_with_query(ctx: Context, query: str) -> Context:
    """Attach the query text to a context."""
    return ctx.with_value(_QUERY_KEY, query)


def query_from_context(ctx: Context) -> str:
    """The query attached to a context, or an empty string."""
    query = ctx.value(_QUERY_KEY)
    return query if isinstance(query, str) else ""


def milliseconds_since(start: float) -> float:
    """Whole milliseconds elapsed since a time.perf_counter() reading."""
    return float(int((time.perf_counter() - start) * 1000))