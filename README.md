# sqltel

Tracing and metrics middleware for database drivers.

`sqltel` wraps a database driver so that ping, exec, query, prepare, begin,
commit and rollback each count the call and record its latency in
milliseconds, and, when tracing allows it, open a client span around the call.
It has no runtime dependencies: the small tracing and metrics model it records
into lives in `sqltel.telemetry`.

## Installation

```
pip install sqltel
```

## Providers

`sqltel.telemetry` has `TracerProvider` and `MeterProvider`, which keep what is
recorded in memory (`TracerProvider.finished_spans`, and each instrument's
`measurements`), and `NoopTracerProvider` and `NoopMeterProvider`, which keep
nothing. The global providers start out as the no-op ones; change them with
`set_tracer_provider` and `set_meter_provider`, or pass providers to a wrapped
driver through options.

## Wrapping a driver

A driver is any object with `open(name)` returning a connection. A connection
needs `close()`, and may offer `ping(ctx)`, `exec_context(ctx, query, args)`,
`query_context(ctx, query, args)`, `begin_tx(ctx, opts)` or `begin()`, and
`prepare_context(ctx, query)` or `prepare(query)`.

```python
from sqltel.driver import wrap
from sqltel.options import allow_root, trace_query_without_args, with_meter_provider, with_tracer_provider
from sqltel.telemetry import Context, MeterProvider, TracerProvider

tracers = TracerProvider()
meters = MeterProvider()

traced = wrap(
    my_driver,
    with_tracer_provider(tracers),
    with_meter_provider(meters),
    allow_root(),
    trace_query_without_args(),
)
conn = traced.open("dsn")
rows = conn.query_context(Context(), "SELECT 1", [])

print([span.name for span in tracers.finished_spans])       # ['sql:query']
print(meters.meter("sqltel").counter("db.sql.client.calls").total)
```

Notes on the wrapped connection (`sqltel.connection.Connection`):

- `exec` and `query` without a context always raise `RuntimeError`; use
  `exec_context` and `query_context`.
- If the driver's connection has no `exec_context` or `query_context`, those
  calls raise `sqltel.values.SkipError`.
- `prepare` returns a `sqltel.statement.Statement`; `begin` and `begin_tx`
  return a `sqltel.transaction.Transaction`.
- Connections and statements are context managers that close on exit.

Other entry points in `sqltel.driver`:

- `wrap_connector(connector, *options)` wraps an object with `driver()` and
  `connect(ctx)`; the result's `connect(ctx)` returns wrapped connections.
- `register_driver(name, driver)`, `registered_drivers()` and
  `lookup_driver(name)` keep a process-wide registry of named drivers.
- `register(driver_name, *options)` wraps a registered driver, registers the
  wrapped one under the first free name `<driver_name>-sqltel-<n>`
  (n from 0 to 149) and returns that name; `RuntimeError` when all are taken.
- `version()` and `sem_version()` give `"0.3.4"` and `"semver:0.3.4"`.

## Options

Options come from `sqltel.options`:

- `with_tracer_provider`, `with_meter_provider`
- `with_instance_name`, `with_system`, `with_database_name`, `with_default_attributes`
- `with_span_name_formatter`, `convert_error_to_span_status`, `disable_err_skip`
- `trace_query`, `trace_query_with_args`, `trace_query_without_args`
- `trace_all`, `allow_root`, `trace_ping`, `trace_rows_next`, `trace_rows_close`,
  `trace_rows_affected`, `trace_last_insert_id`
- `with_minimum_read_db_stats_interval` (for `record_stats` only)

By default spans are created only when the context already carries a span;
`allow_root()` lets the wrapper start root spans. Span names are the method
prefixed with `sql:`. Query arguments recorded by `trace_query_with_args` go
under `db.sql.args.<name or ordinal>`, with text longer than 256 characters
shortened.

## Connection pool statistics

`sqltel.stats.record_stats(db, *options)` registers gauges for open, idle and
active connections, wait count, wait duration (ms), and connections closed by
the idle and lifetime limits. `db` must have a `stats()` method returning a
`sqltel.stats.DBStats`. The gauges are filled when the meter's `collect(ctx)`
runs; `db.stats()` is read no more often than the minimum interval (one second
by default), and the last snapshot is reused in between.

## Query logging

`sqltel.pgxlog.PgxLogger` turns driver log calls (`log(level, msg, data)` with
a `LogLevel`) into standard `logging` records on the `pgx` logger or one you
pass in. The driver's info level is logged as debug. An `sql` field is
flattened to one line and appended to the message, with `$1`, `$2`, ...
replaced by values from an `args` field; `substitute_args` does that
substitution on its own.

## What it does not do

`sqltel` ships no database drivers and no command. It does not export spans or
metrics anywhere: they stay in the in-memory providers of `sqltel.telemetry`
for your code to read.

## Running the tests

```
pip install -e .[test]
pytest
```