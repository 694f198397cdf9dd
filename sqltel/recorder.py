"""Call counts and latencies for database methods."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from .attribute import DB_OPERATION, DB_SQL_ERROR, DB_SQL_STATUS_ERROR, DB_SQL_STATUS_OK, KeyValue
from .telemetry import Context, milliseconds_since

LatencyRecorder = Callable[..., None]
CallsCounter = Callable[..., None]


@dataclass(frozen=True)
class MethodRecorder:
    """Counts calls and records their latency in milliseconds."""

    record_latency: LatencyRecorder
    count_calls: CallsCounter
    attributes: tuple[KeyValue, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", tuple(self.attributes))

    def record(self, ctx: Context, method: str, *labels: KeyValue) -> Callable[..., None]:
        """Start timing a call; the returned function finishes it with its error or None."""
        start = time.perf_counter()
        base = [*self.attributes, *labels, KeyValue(DB_OPERATION, method)]

        def end(err: BaseException | None = None) -> None:
            elapsed = milliseconds_since(start)
            if err is None:
                attrs = [*base, DB_SQL_STATUS_OK]
            else:
                attrs = [*base, DB_SQL_STATUS_ERROR, KeyValue(DB_SQL_ERROR, str(err))]
            self.count_calls(ctx, 1, *attrs)
            self.record_latency(ctx, elapsed, *attrs)

        return end