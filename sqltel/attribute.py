"""Telemetry attributes and conversion of database values into them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from .values import NamedValue

DB_INSTANCE = "db.instance"
DB_NAME = "db.name"
DB_SYSTEM = "db.system"
DB_OPERATION = "db.operation"
DB_STATEMENT = "db.statement"
DB_SQL_STATUS = "db.sql.status"
DB_SQL_ERROR = "db.sql.error"
DB_SQL_ROWS_NEXT_SUCCESS_COUNT = "db.sql.rows_next.success_count"
DB_SQL_ROWS_NEXT_LATENCY_AVG = "db.sql.rows_next.latency_avg"

ARGS_KEY_PREFIX = "db.sql.args."

_MAX_STRING_VALUE_LENGTH = 256
_SHORTENED_PATTERN = "... (more than 256 chars)"

_MICROSECOND_NS = 1_000
_MILLISECOND_NS = 1_000_000
_SECOND_NS = 1_000_000_000


@dataclass(frozen=True)
class KeyValue:
    """A single attribute: a key and its value."""

    key: str
    value: Any


DB_SQL_STATUS_OK = KeyValue(DB_SQL_STATUS, "OK")
DB_SQL_STATUS_ERROR = KeyValue(DB_SQL_STATUS, "ERROR")


def key_from_named_value(arg: NamedValue) -> str:
    """Attribute key for a statement argument, by name or else by ordinal."""
    return ARGS_KEY_PREFIX + (arg.name if arg.name else str(arg.ordinal))


def from_named_value(arg: NamedValue) -> KeyValue:
    """Convert a statement argument into an attribute."""
    return key_value(key_from_named_value(arg), arg.value)


def _homogeneous_sequence(val: list | tuple) -> tuple | None:
    if not val:
        return None
    if all(isinstance(item, bool) for item in val):
        return tuple(val)
    if all(isinstance(item, int) and not isinstance(item, bool) for item in val):
        return tuple(val)
    if all(isinstance(item, float) for item in val):
        return tuple(val)
    return None


def key_value(key: str, val: Any) -> KeyValue:
    """Build an attribute from an arbitrary value, shortening long text."""
    if val is None:
        return KeyValue(key, "")
    if isinstance(val, (bool, int, float)):
        return KeyValue(key, val)
    if isinstance(val, (bytes, bytearray, memoryview)):
        return KeyValue(key, _shorten_string(bytes(val).decode("utf-8", errors="replace")))
    if isinstance(val, str):
        return KeyValue(key, _shorten_string(val))
    if isinstance(val, (list, tuple)):
        items = _homogeneous_sequence(val)
        if items is not None:
            return KeyValue(key, items)
    if isinstance(val, timedelta):
        return key_value_duration(key, val)
    return KeyValue(key, _shorten_string(str(val)))


def key_value_duration(key: str, d: timedelta) -> KeyValue:
    """Attribute holding a duration; sub-millisecond values use whole microseconds."""
    nanoseconds = (d // timedelta(microseconds=1)) * _MICROSECOND_NS
    if _MICROSECOND_NS <= nanoseconds < _MILLISECOND_NS:
        return KeyValue(key, f"{nanoseconds // _MICROSECOND_NS}us")
    return KeyValue(key, _format_duration(nanoseconds))


def _format_fraction(value: int, digits: int) -> str:
    whole, fraction = divmod(value, 10**digits)
    if fraction == 0:
        return str(whole)
    return f"{whole}." + f"{fraction:0{digits}d}".rstrip("0")


def _format_duration(nanoseconds: int) -> str:
    if nanoseconds == 0:
        return "0s"
    sign = "-" if nanoseconds < 0 else ""
    magnitude = abs(nanoseconds)
    if magnitude < _MICROSECOND_NS:
        return f"{sign}{magnitude}ns"
    if magnitude < _MILLISECOND_NS:
        return f"{sign}{_format_fraction(magnitude, 3)}µs"
    if magnitude < _SECOND_NS:
        return f"{sign}{_format_fraction(magnitude, 6)}ms"

    whole_seconds, fraction = divmod(magnitude, _SECOND_NS)
    hours, remainder = divmod(whole_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    parts = [sign]
    if hours:
        parts.append(f"{hours}h")
    if hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(_format_fraction(seconds * _SECOND_NS + fraction, 9))
    parts.append("s")
    return "".join(parts)


def _shorten_string(s: str) -> str:
    if len(s) <= _MAX_STRING_VALUE_LENGTH:
        return s
    end = _MAX_STRING_VALUE_LENGTH - len(_SHORTENED_PATTERN)
    return s[:end] + _SHORTENED_PATTERN