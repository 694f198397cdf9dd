"""Instrumented drivers and a registry of named drivers."""

from __future__ import annotations

import threading
from typing import Any

from .begin import make_begin_middlewares
from .connection import ConnConfig, Connection, wrap_conn
from .execute import METRIC_METHOD_EXEC, TRACE_METHOD_EXEC, make_exec_middlewares, new_exec_config
from .middleware import make_ping_middlewares
from .options import DriverOptions, Option
from .prepare import PrepareConfig, make_prepare_middlewares
from .query import METRIC_METHOD_QUERY, TRACE_METHOD_QUERY, make_query_middlewares, new_query_config
from .recorder import MethodRecorder
from .statement import (
    METRIC_METHOD_STMT_EXEC,
    METRIC_METHOD_STMT_QUERY,
    TRACE_METHOD_STMT_EXEC,
    TRACE_METHOD_STMT_QUERY,
)
from .telemetry import (
    DB_SQL_CLIENT_CALLS,
    DB_SQL_CLIENT_LATENCY_MS,
    UNIT_DIMENSIONLESS,
    UNIT_MILLISECONDS,
    Context,
)
from .tracer import MethodTracer, tracer_or_none

INSTRUMENTATION_NAME = "sqltel"
MAX_DRIVER_SLOTS = 150

_VERSION = "0.3.4"

_registry: dict[str, Any] = {}
_registry_lock = threading.Lock()
_register_lock = threading.Lock()


def version() -> str:
    """Release version of the instrumentation."""
    return _VERSION


def sem_version() -> str:
    """Version in the form given to tracer and meter creation."""
    return "semver:" + version()


def register_driver(name: str, driver: Any) -> None:
    """Make a driver available under a name; names are unique."""
    if driver is None:
        raise ValueError("register driver: driver is None")
    with _registry_lock:
        if name in _registry:
            raise ValueError(f"register driver: called twice for driver {name}")
        _registry[name] = driver


def registered_drivers() -> list[str]:
    """Sorted names of the registered drivers."""
    with _registry_lock:
        return sorted(_registry)


def lookup_driver(name: str) -> Any:
    """The driver registered under a name."""
    with _registry_lock:
        try:
            return _registry[name]
        except KeyError:
            raise LookupError(f"unknown driver {name!r} (forgotten import?)") from None


def _noop_close() -> None:
    return None


class Driver:
    """A driver or connector whose connections are instrumented."""

    def __init__(self, parent: Any, conn_config: ConnConfig, connector: Any = None, close: Any = None) -> None:
        self.parent = parent
        self.connector = connector
        self.conn_config = conn_config
        self._close = close or _noop_close

    def open(self, name: str) -> Connection:
        return wrap_conn(self.parent.open(name), self.conn_config)

    def close(self) -> Any:
        return self._close()

    def open_connector(self, name: str) -> Driver:
        """Open a connector from the parent driver; the new driver closes with it."""
        connector = self.parent.open_connector(name)
        close = getattr(connector, "close", None)
        return Driver(self.parent, self.conn_config, connector, close if callable(close) else None)

    def connect(self, ctx: Context) -> Connection:
        if self.connector is None:
            raise RuntimeError("driver has no connector")
        return wrap_conn(self.connector.connect(ctx), self.conn_config)

    def driver(self) -> Driver:
        return self


def _driver_options(options: tuple[Option, ...]) -> DriverOptions:
    settings = DriverOptions()
    for option in options:
        option.apply_driver_options(settings)
    return settings


def new_conn_config(options: DriverOptions) -> ConnConfig:
    """Build the middlewares of every connection call from driver options."""
    meter = options.meter_provider.meter(INSTRUMENTATION_NAME)
    tracer = MethodTracer(
        options.tracer_provider.tracer(INSTRUMENTATION_NAME, version()),
        allow_root=options.trace.allow_root,
        attributes=options.default_attributes,
        format_span_name=options.trace.span_name_formatter,
        error_to_status=options.trace.error_to_span_status,
    )
    latency = meter.histogram(
        DB_SQL_CLIENT_LATENCY_MS,
        UNIT_MILLISECONDS,
        "The distribution of latencies of various calls in milliseconds",
    )
    calls = meter.counter(DB_SQL_CLIENT_CALLS, UNIT_DIMENSIONLESS, "The number of various calls of methods")
    recorder = MethodRecorder(latency.record, calls.add, tuple(options.default_attributes))
    root_tracer = tracer_or_none(tracer, options.trace.allow_root)

    stmt_exec = new_exec_config(options, METRIC_METHOD_STMT_EXEC, TRACE_METHOD_STMT_EXEC)
    stmt_query = new_query_config(options, METRIC_METHOD_STMT_QUERY, TRACE_METHOD_STMT_QUERY)

    return ConnConfig(
        ping_middlewares=make_ping_middlewares(recorder, tracer_or_none(tracer, options.trace.ping)),
        exec_middlewares=make_exec_middlewares(
            recorder, tracer, new_exec_config(options, METRIC_METHOD_EXEC, TRACE_METHOD_EXEC)
        ),
        query_middlewares=make_query_middlewares(
            recorder, tracer, new_query_config(options, METRIC_METHOD_QUERY, TRACE_METHOD_QUERY)
        ),
        begin_middlewares=make_begin_middlewares(recorder, tracer),
        prepare_middlewares=make_prepare_middlewares(
            recorder,
            tracer,
            PrepareConfig(
                query_tracer=options.trace.query_tracer,
                exec_middlewares=make_exec_middlewares(recorder, root_tracer, stmt_exec),
                exec_context_middlewares=make_exec_middlewares(recorder, tracer, stmt_exec),
                query_middlewares=make_query_middlewares(recorder, root_tracer, stmt_query),
                query_context_middlewares=make_query_middlewares(recorder, tracer, stmt_query),
            ),
        ),
    )


def wrap(driver: Any, *options: Option) -> Driver:
    """Wrap a driver with tracing and metrics."""
    return Driver(driver, new_conn_config(_driver_options(options)))


def wrap_connector(connector: Any, *options: Option) -> Driver:
    """Wrap a connector, so no driver needs registering."""
    close = getattr(connector, "close", None)
    return Driver(
        connector.driver(),
        new_conn_config(_driver_options(options)),
        connector,
        close if callable(close) else None,
    )


def register(driver_name: str, *options: Option) -> str:
    """Register a wrapped copy of a registered driver under the first free slot name."""
    driver = lookup_driver(driver_name)
    prefix = driver_name + "-sqltel-"
    with _register_lock:
        taken = set(registered_drivers())
        for slot in range(MAX_DRIVER_SLOTS):
            name = f"{prefix}{slot}"
            if name not in taken:
                register_driver(name, wrap(driver, *options))
                return name
    raise RuntimeError("unable to register driver, all slots have been taken")