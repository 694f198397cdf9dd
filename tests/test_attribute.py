from datetime import timedelta

import pytest

from sqltel.attribute import (
    KeyValue,
    from_named_value,
    key_from_named_value,
    key_value,
    key_value_duration,
)
from sqltel.values import NamedValue

PATTERN = "... (more than 256 chars)"


def test_key_uses_name_when_present():
    assert key_from_named_value(NamedValue(name="id", ordinal=4)) == "db.sql.args.id"


def test_key_falls_back_to_ordinal():
    assert key_from_named_value(NamedValue(ordinal=3)) == "db.sql.args.3"


def test_from_named_value():
    assert from_named_value(NamedValue(ordinal=1, value="x")) == KeyValue("db.sql.args.1", "x")


def test_none_becomes_empty_string():
    assert key_value("k", None) == KeyValue("k", "")


@pytest.mark.parametrize("value", [True, False, 42, 2.5, "text"])
def test_scalars_are_kept(value):
    result = key_value("k", value)
    assert result.value == value
    assert type(result.value) is type(value)


def test_bytes_become_text():
    assert key_value("k", b"hello").value == "hello"


def test_long_string_is_shortened():
    text = "x" * 300
    result = key_value("k", text).value
    assert len(result) == 256
    assert result.endswith(PATTERN)
    assert result.startswith(text[: 256 - len(PATTERN)])


def test_string_at_limit_is_unchanged():
    text = "y" * 256
    assert key_value("k", text).value == text


def test_long_bytes_are_shortened():
    result = key_value("k", b"z" * 1000).value
    assert len(result) == 256
    assert result.endswith(PATTERN)


@pytest.mark.parametrize("values", [[1, 2, 3], [True, False], [1.5, 2.5]])
def test_homogeneous_lists_become_tuples(values):
    assert key_value("k", values).value == tuple(values)


def test_other_objects_use_their_text():
    class Thing:
        def __str__(self):
            return "thing"

    assert key_value("k", Thing()).value == "thing"


def test_sub_millisecond_duration_in_microseconds():
    assert key_value_duration("d", timedelta(microseconds=500)).value == "500us"
    assert key_value_duration("d", timedelta(microseconds=1)).value == "1us"


def test_millisecond_duration_uses_standard_form():
    assert key_value_duration("d", timedelta(milliseconds=1)).value == "1ms"


def test_minute_duration():
    assert key_value_duration("d", timedelta(seconds=90)).value == "1m30s"


def test_timedelta_goes_through_duration_conversion():
    d = timedelta(microseconds=250)
    assert key_value("d", d) == key_value_duration("d", d)