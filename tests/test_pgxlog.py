import itertools
import logging

import pytest

from sqltel.pgxlog import ARGS_FIELD, SQL_FIELD, LogLevel, PgxLogger, substitute_args

_counter = itertools.count()


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _emit(level, msg, data):
    """Log one entry through a fresh PgxLogger and return the captured records."""
    logger = logging.getLogger(f"test-pgxlog-{next(_counter)}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = ListHandler()
    logger.addHandler(handler)
    try:
        PgxLogger(logger).log(level, msg, data)
    finally:
        logger.removeHandler(handler)
    return handler.records


MULTI_LINE = """UPDATE tx SET revert = true WHERE
						created_at < current_timestamp  AND  created_at > current_timestamp - interval '3' month AND
						id = $1 AND "accountId" = $2 """


@pytest.mark.parametrize(
    "level, data, checks",
    [
        (LogLevel.TRACE, {"X": True}, ["PGX_LOG_LEVEL", "trace"]),
        (LogLevel.DEBUG, {"PGX_LOG_LEVEL": True}, ["PGX_LOG_LEVEL", "true"]),
        (LogLevel.INFO, {"PGX_LOG_LEVEL": True}, ["PGX_LOG_LEVEL", "true"]),
        (LogLevel.WARN, {"PGX_LOG_LEVEL": True}, ["PGX_LOG_LEVEL", "true"]),
        (LogLevel.ERROR, {"PGX_LOG_LEVEL": True}, ["PGX_LOG_LEVEL", "true"]),
        (
            LogLevel.INFO,
            {SQL_FIELD: "insert * from table where user = $1", ARGS_FIELD: [100500]},
            ["insert * from table where user = 100500"],
        ),
        (
            LogLevel.INFO,
            {SQL_FIELD: "insert * from table where user = $1"},
            ["insert * from table where user = $"],
        ),
        (
            LogLevel.INFO,
            {SQL_FIELD: MULTI_LINE},
            [
                "UPDATE tx SET revert = true WHERE created_at < current_timestamp AND "
                "created_at > current_timestamp - interval"
            ],
        ),
    ],
    ids=[
        "LogLevelTrace",
        "LogLevelDebug",
        "LogLevelInfo",
        "LogLevelWarn",
        "LogLevelError",
        "check sql and args fields",
        "check sql no args",
        "multi-line",
    ],
)
def test_logger(level, data, checks):
    records = _emit(level, "test", data)
    assert len(records) == 1
    line = records[0].getMessage()
    for value in checks:
        assert value in line


@pytest.mark.parametrize(
    "level, expected",
    [
        (LogLevel.TRACE, logging.DEBUG),
        (LogLevel.DEBUG, logging.DEBUG),
        (LogLevel.INFO, logging.DEBUG),
        (LogLevel.WARN, logging.WARNING),
        (LogLevel.ERROR, logging.ERROR),
        (LogLevel.NONE, logging.INFO),
    ],
)
def test_level_mapping(level, expected):
    records = _emit(level, "test", {})
    assert records[0].levelno == expected


def test_sql_and_args_not_kept_as_fields():
    records = _emit(LogLevel.INFO, "Query", {SQL_FIELD: "select $1", ARGS_FIELD: [1], "rowCount": 1})
    record = records[0]
    keys = [key for key, _ in record.fields]
    assert keys == ["rowCount", "component"]
    assert record.getMessage().startswith("Query: select 1")


def test_component_field():
    records = _emit(LogLevel.WARN, "test", {})
    assert ("component", "pgx") in records[0].fields


def test_none_level_adds_level_name():
    records = _emit(LogLevel.NONE, "test", {})
    assert ("PGX_LOG_LEVEL", "none") in records[0].fields


def test_non_string_sql_becomes_empty():
    records = _emit(LogLevel.INFO, "test", {SQL_FIELD: 42})
    message = records[0].getMessage()
    assert message.startswith("test: ")
    assert "42" not in message


def test_substitute_args_in_order():
    assert substitute_args("a = $1 and b = $2", ["x", 3]) == "a = x and b = 3"


def test_substitute_args_formats_booleans_and_none():
    assert substitute_args("$1 $2", [True, None]) == "true <nil>"


def test_substitute_args_without_args_is_unchanged():
    assert substitute_args("select $1", []) == "select $1"


def test_trace_level_is_named_in_fields():
    records = _emit(LogLevel.TRACE, "test", {})
    assert ("PGX_LOG_LEVEL", "trace") in records[0].fields