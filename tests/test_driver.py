import uuid

import pytest

from sqltel.attribute import DB_STATEMENT
from sqltel.connection import Connection
from sqltel.driver import (
    INSTRUMENTATION_NAME,
    MAX_DRIVER_SLOTS,
    Driver,
    lookup_driver,
    register,
    register_driver,
    registered_drivers,
    sem_version,
    version,
    wrap,
    wrap_connector,
)
from sqltel.options import allow_root, trace_all, trace_ping, with_meter_provider, with_tracer_provider
from sqltel.telemetry import DB_SQL_CLIENT_CALLS, Context, MeterProvider, TracerProvider


class FakeResult:
    def last_insert_id(self):
        return 1

    def rows_affected(self):
        return 1


class FakeConn:
    def __init__(self, name):
        self.name = name

    def ping(self, ctx):
        return None

    def exec_context(self, ctx, query, args):
        return FakeResult()

    def prepare(self, query):
        return query

    def begin(self):
        return None

    def close(self):
        return None


class FakeConnector:
    def __init__(self, driver=None):
        self._driver = driver
        self.closed = False

    def connect(self, ctx):
        return FakeConn("connector")

    def driver(self):
        return self._driver

    def close(self):
        self.closed = True


class FakeDriver:
    def __init__(self):
        self.connector = FakeConnector(self)

    def open(self, name):
        return FakeConn(name)

    def open_connector(self, name):
        return self.connector


def unique_name():
    return f"fake-{uuid.uuid4().hex}"


def test_version_values():
    assert version() == "0.3.4"
    assert sem_version() == "semver:0.3.4"


def test_register_driver_and_lookup():
    name = unique_name()
    driver = FakeDriver()
    register_driver(name, driver)
    assert lookup_driver(name) is driver
    assert name in registered_drivers()
    with pytest.raises(ValueError):
        register_driver(name, driver)


def test_lookup_unknown_driver():
    with pytest.raises(LookupError):
        lookup_driver(unique_name())


def test_register_uses_free_slots():
    name = unique_name()
    register_driver(name, FakeDriver())
    first = register(name)
    second = register(name)
    assert first != second
    assert first.startswith(name)
    assert isinstance(lookup_driver(first), Driver)


def test_register_fails_when_slots_are_taken():
    name = unique_name()
    register_driver(name, FakeDriver())
    names = {register(name) for _ in range(MAX_DRIVER_SLOTS)}
    assert len(names) == MAX_DRIVER_SLOTS
    with pytest.raises(RuntimeError, match="all slots have been taken"):
        register(name)


def test_wrapped_exec_is_traced_and_counted():
    tracers, meters = TracerProvider(), MeterProvider()
    driver = wrap(FakeDriver(), with_tracer_provider(tracers), with_meter_provider(meters), trace_all())
    conn = driver.open("dsn")
    assert isinstance(conn, Connection)
    result = conn.exec_context(Context(), "select 1", [])
    assert result.rows_affected() == 1
    exec_span = tracers.finished_spans[0]
    assert exec_span.name == "sql:exec"
    assert exec_span.attributes[DB_STATEMENT] == "select 1"
    assert meters.meter(INSTRUMENTATION_NAME).counter(DB_SQL_CLIENT_CALLS).total == 1


def test_ping_traced_only_when_asked():
    tracers, meters = TracerProvider(), MeterProvider()
    quiet = wrap(FakeDriver(), with_tracer_provider(tracers), with_meter_provider(meters), allow_root())
    quiet.open("dsn").ping(Context())
    assert tracers.finished_spans == []
    assert meters.meter(INSTRUMENTATION_NAME).counter(DB_SQL_CLIENT_CALLS).total == 1

    traced = wrap(FakeDriver(), with_tracer_provider(tracers), allow_root(), trace_ping())
    traced.open("dsn").ping(Context())
    assert [span.name for span in tracers.finished_spans] == ["sql:ping"]


def test_connect_without_connector_fails():
    with pytest.raises(RuntimeError):
        wrap(FakeDriver()).connect(Context())