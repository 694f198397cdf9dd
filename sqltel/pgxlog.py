"""A log adapter that turns PostgreSQL driver log calls into standard logging records."""

from __future__ import annotations

import enum
import json
import logging
from typing import Any, Mapping, Sequence

SQL_FIELD = "sql"
ARGS_FIELD = "args"
LEVEL_FIELD = "PGX_LOG_LEVEL"


class LogLevel(enum.IntEnum):
    """Driver log levels, most verbose first."""

    TRACE = 6
    DEBUG = 5
    INFO = 4
    WARN = 3
    ERROR = 2
    NONE = 1

    def __str__(self) -> str:
        return self.name.lower()


def _level_name(level: int) -> str:
    try:
        return str(LogLevel(level))
    except ValueError:
        return f"invalid level {int(level)}"


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    return str(value)


def _render_field(value: Any) -> str:
    if isinstance(value, (bool, str)) or value is None:
        return _format_value(value)
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, default=str)


def substitute_args(sql: str, args: Sequence[Any]) -> str:
    """Replace the placeholders $1, $2, ... in order with the argument values."""
    for position, arg in enumerate(args, start=1):
        sql = sql.replace(f"${position}", _format_value(arg))
    return sql


class PgxLogger:
    """Writes driver log calls to a logger; the driver's info level becomes debug."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("pgx")

    def _emit(self, level: int, msg: str, fields: list[tuple[str, Any]]) -> None:
        rendered = " ".join(f"{key}={_render_field(value)}" for key, value in fields)
        text = f"{msg} {rendered}" if rendered else msg
        self.logger.log(level, text, extra={"fields": list(fields)})

    def log(self, level: int, msg: str, data: Mapping[str, Any] | None) -> None:
        data = data or {}
        try:
            self._log(level, msg, data)
        except Exception as exc:
            self._emit(logging.ERROR, "possible unsafe cast", [("component", "pgx-logger"), ("recovery", str(exc))])

    def _log(self, level: int, msg: str, data: Mapping[str, Any]) -> None:
        fields = [(key, value) for key, value in data.items() if key not in (SQL_FIELD, ARGS_FIELD)]

        if level == LogLevel.TRACE:
            py_level = logging.DEBUG
            fields.append((LEVEL_FIELD, _level_name(level)))
        elif level in (LogLevel.DEBUG, LogLevel.INFO):
            py_level = logging.DEBUG
        elif level == LogLevel.WARN:
            py_level = logging.WARNING
        elif level == LogLevel.ERROR:
            py_level = logging.ERROR
        else:
            py_level = logging.INFO
            fields.append((LEVEL_FIELD, _level_name(level)))

        if SQL_FIELD in data:
            raw = data[SQL_FIELD]
            sql = raw if isinstance(raw, str) else ""
            if ARGS_FIELD in data:
                args = data[ARGS_FIELD]
                sql = substitute_args(sql, args if isinstance(args, (list, tuple)) else [])
            sql = " ".join(sql.split())
            msg = f"{msg}: {sql}"

        fields.append(("component", "pgx"))
        self._emit(py_level, msg, fields)