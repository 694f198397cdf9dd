"""Connection-pool statistics published as observable gauges."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from .attribute import KeyValue
from .driver import INSTRUMENTATION_NAME
from .options import Option, StatsOptions
from .telemetry import (
    DB_SQL_CONNECTIONS_ACTIVE,
    DB_SQL_CONNECTIONS_IDLE,
    DB_SQL_CONNECTIONS_IDLE_CLOSED,
    DB_SQL_CONNECTIONS_LIFETIME_CLOSED,
    DB_SQL_CONNECTIONS_OPEN,
    DB_SQL_CONNECTIONS_WAIT_COUNT,
    DB_SQL_CONNECTIONS_WAIT_DURATION,
    UNIT_DIMENSIONLESS,
    UNIT_MILLISECONDS,
    Context,
    Meter,
    get_meter_provider,
)

DEFAULT_MINIMUM_READ_DB_STATS_INTERVAL = timedelta(seconds=1)


@dataclass(frozen=True)
class DBStats:
    """A snapshot of a connection pool's counters."""

    max_open_connections: int = 0
    open_connections: int = 0
    in_use: int = 0
    idle: int = 0
    wait_count: int = 0
    wait_duration: timedelta = timedelta(0)
    max_idle_closed: int = 0
    max_idle_time_closed: int = 0
    max_lifetime_closed: int = 0


def _seconds(interval: Any) -> float:
    if interval is None:
        return DEFAULT_MINIMUM_READ_DB_STATS_INTERVAL.total_seconds()
    if isinstance(interval, timedelta):
        return interval.total_seconds()
    return float(interval)


def record_stats(db: Any, *options: Option) -> None:
    """Publish ``db.stats()`` through gauges read on each collection.

    The pool is queried at most once per minimum interval; between reads the
    last snapshot is observed again.
    """
    settings = StatsOptions(
        meter_provider=get_meter_provider(),
        minimum_read_db_stats_interval=DEFAULT_MINIMUM_READ_DB_STATS_INTERVAL,
    )
    for option in options:
        option.apply_stats_options(settings)

    provider = settings.meter_provider or get_meter_provider()
    meter = provider.meter(INSTRUMENTATION_NAME)
    _record_stats(
        meter,
        db,
        _seconds(settings.minimum_read_db_stats_interval),
        tuple(settings.default_attributes or ()),
    )


def _record_stats(meter: Meter, db: Any, minimum_interval: float, attrs: tuple[KeyValue, ...]) -> None:
    lock = threading.Lock()
    with lock:
        open_connections = meter.gauge(
            DB_SQL_CONNECTIONS_OPEN, UNIT_DIMENSIONLESS, "Count of open connections in the pool"
        )
        idle_connections = meter.gauge(
            DB_SQL_CONNECTIONS_IDLE, UNIT_DIMENSIONLESS, "Count of idle connections in the pool"
        )
        active_connections = meter.gauge(
            DB_SQL_CONNECTIONS_ACTIVE, UNIT_DIMENSIONLESS, "Count of active connections in the pool"
        )
        wait_count = meter.gauge(
            DB_SQL_CONNECTIONS_WAIT_COUNT, UNIT_DIMENSIONLESS, "The total number of connections waited for"
        )
        wait_duration = meter.gauge(
            DB_SQL_CONNECTIONS_WAIT_DURATION,
            UNIT_MILLISECONDS,
            "The total time blocked waiting for a new connection",
        )
        idle_closed = meter.gauge(
            DB_SQL_CONNECTIONS_IDLE_CLOSED,
            UNIT_DIMENSIONLESS,
            "The total number of connections closed due to SetMaxIdleConns",
        )
        lifetime_closed = meter.gauge(
            DB_SQL_CONNECTIONS_LIFETIME_CLOSED,
            UNIT_DIMENSIONLESS,
            "The total number of connections closed due to SetConnMaxLifetime",
        )

        state: dict[str, Any] = {"stats": DBStats(), "last_read": None}

        def observe(ctx: Context) -> None:
            with lock:
                now = time.monotonic()
                last = state["last_read"]
                if last is None or now - last >= minimum_interval:
                    state["stats"] = db.stats()
                    state["last_read"] = now
                stats: DBStats = state["stats"]

                open_connections.observe(ctx, int(stats.open_connections), *attrs)
                idle_connections.observe(ctx, int(stats.idle), *attrs)
                active_connections.observe(ctx, int(stats.in_use), *attrs)
                wait_count.observe(ctx, int(stats.wait_count), *attrs)
                wait_duration.observe(ctx, (stats.wait_duration // timedelta(microseconds=1)) / 1000, *attrs)
                idle_closed.observe(ctx, int(stats.max_idle_closed), *attrs)
                lifetime_closed.observe(ctx, int(stats.max_lifetime_closed), *attrs)

        meter.register_callback(
            [
                open_connections,
                idle_connections,
                active_connections,
                wait_count,
                wait_duration,
                idle_closed,
                lifetime_closed,
            ],
            observe,
        )