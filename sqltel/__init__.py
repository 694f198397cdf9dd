"""Tracing and metrics middleware for database drivers, with an in-memory telemetry model."""

__version__ = "0.3.4"

__all__ = [
    "attribute",
    "begin",
    "connection",
    "driver",
    "execute",
    "middleware",
    "options",
    "pgxlog",
    "prepare",
    "query",
    "recorder",
    "result",
    "rows",
    "statement",
    "stats",
    "telemetry",
    "tracer",
    "transaction",
    "values",
]