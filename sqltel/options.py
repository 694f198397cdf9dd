"""Configuration of the instrumented driver and of pool statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable

from . import tracer as _tracer
from .attribute import DB_INSTANCE, DB_NAME, KeyValue
from .telemetry import MeterProvider, TracerProvider, get_meter_provider, get_tracer_provider

DEFAULT_MINIMUM_READ_DB_STATS_INTERVAL = timedelta(seconds=1)


@dataclass
class TraceOptions:
    """Which calls create spans, and how spans are named and given status."""

    span_name_formatter: Callable[..., str] = _tracer.format_span_name
    error_to_span_status: Callable[..., Any] = _tracer.span_status_from_error
    query_tracer: Callable[..., list] = _tracer.trace_no_query
    allow_root: bool = False
    ping: bool = False
    rows_next: bool = False
    rows_close: bool = False
    rows_affected: bool = False
    last_insert_id: bool = False


@dataclass
class DriverOptions:
    """Options of a wrapped driver."""

    tracer_provider: TracerProvider = field(default_factory=get_tracer_provider)
    meter_provider: MeterProvider = field(default_factory=get_meter_provider)
    trace: TraceOptions = field(default_factory=TraceOptions)
    default_attributes: list[KeyValue] = field(default_factory=list)


@dataclass
class StatsOptions:
    """Options of pool statistics recording."""

    meter_provider: MeterProvider = field(default_factory=get_meter_provider)
    minimum_read_db_stats_interval: timedelta = DEFAULT_MINIMUM_READ_DB_STATS_INTERVAL
    default_attributes: list[KeyValue] = field(default_factory=list)


@dataclass(frozen=True)
class Option:
    """A setting for driver options, statistics options, or both."""

    driver: Callable[[DriverOptions], None] | None = None
    stats: Callable[[StatsOptions], None] | None = None

    def apply_driver_options(self, options: DriverOptions) -> None:
        if self.driver is None:
            raise TypeError("option does not apply to driver options")
        self.driver(options)

    def apply_stats_options(self, options: StatsOptions) -> None:
        if self.stats is None:
            raise TypeError("option does not apply to stats options")
        self.stats(options)


def with_meter_provider(provider: MeterProvider) -> Option:
    """Use this meter provider."""

    def apply(options: DriverOptions | StatsOptions) -> None:
        options.meter_provider = provider

    return Option(driver=apply, stats=apply)


def with_tracer_provider(provider: TracerProvider) -> Option:
    """Use this tracer provider."""

    def apply(options: DriverOptions) -> None:
        options.tracer_provider = provider

    return Option(driver=apply)


def with_default_attributes(*attributes: KeyValue) -> Option:
    """Attributes added to every span and metric."""

    def apply(options: DriverOptions | StatsOptions) -> None:
        options.default_attributes.extend(attributes)

    return Option(driver=apply, stats=apply)


def with_instance_name(instance_name: str) -> Option:
    """Set the database instance name."""
    return with_default_attributes(KeyValue(DB_INSTANCE, instance_name))


def with_system(system: KeyValue) -> Option:
    """Set the database system attribute."""
    return with_default_attributes(system)


def with_database_name(name: str) -> Option:
    """Set the database name."""
    return with_default_attributes(KeyValue(DB_NAME, name))


def _trace_setting(**settings: Any) -> Option:
    def apply(options: DriverOptions) -> None:
        for name, value in settings.items():
            setattr(options.trace, name, value)

    return Option(driver=apply)


def with_span_name_formatter(formatter: Callable[..., str]) -> Option:
    """Use a custom span name formatter."""
    return _trace_setting(span_name_formatter=formatter)


def convert_error_to_span_status(converter: Callable[..., Any]) -> Option:
    """Use a custom error-to-status converter."""
    return _trace_setting(error_to_span_status=converter)


def disable_err_skip() -> Option:
    """Do not mark spans as failed for SkipError."""
    return convert_error_to_span_status(_tracer.span_status_from_error_ignore_err_skip)


def trace_query(query_tracer: Callable[..., list]) -> Option:
    """Use a custom function for query attributes."""
    return _trace_setting(query_tracer=query_tracer)


def trace_query_with_args() -> Option:
    """Add the statement and all arguments to spans."""
    return trace_query(_tracer.trace_query_with_args)


def trace_query_without_args() -> Option:
    """Add the statement without arguments to spans."""
    return trace_query(_tracer.trace_query_without_args)


def trace_all() -> Option:
    """Trace every method, with query arguments, allowing root spans."""
    return _trace_setting(
        query_tracer=_tracer.trace_query_with_args,
        allow_root=True,
        ping=True,
        rows_next=True,
        rows_close=True,
        rows_affected=True,
        last_insert_id=True,
    )


def allow_root() -> Option:
    """Allow spans with no parent span."""
    return _trace_setting(allow_root=True)


def trace_ping() -> Option:
    """Create spans for ping."""
    return _trace_setting(ping=True)


def trace_rows_next() -> Option:
    """Create spans for each row fetch."""
    return _trace_setting(rows_next=True)


def trace_rows_close() -> Option:
    """Create spans for closing rows."""
    return _trace_setting(rows_close=True)


def trace_rows_affected() -> Option:
    """Create spans for rows-affected calls."""
    return _trace_setting(rows_affected=True)


def trace_last_insert_id() -> Option:
    """Create spans for last-insert-id calls."""
    return _trace_setting(last_insert_id=True)


def with_minimum_read_db_stats_interval(interval: timedelta) -> Option:
    """Minimum time between reads of pool statistics."""

    def apply(options: StatsOptions) -> None:
        options.minimum_read_db_stats_interval = interval

    return Option(stats=apply)