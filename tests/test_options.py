from datetime import timedelta

import pytest

from sqltel import tracer
from sqltel.attribute import DB_INSTANCE, DB_NAME, KeyValue
from sqltel.options import (
    DriverOptions,
    StatsOptions,
    allow_root,
    disable_err_skip,
    trace_all,
    trace_last_insert_id,
    trace_ping,
    trace_query,
    trace_query_with_args,
    trace_query_without_args,
    trace_rows_affected,
    trace_rows_close,
    trace_rows_next,
    with_database_name,
    with_default_attributes,
    with_instance_name,
    with_meter_provider,
    with_minimum_read_db_stats_interval,
    with_span_name_formatter,
    with_system,
    with_tracer_provider,
)
from sqltel.telemetry import MeterProvider, TracerProvider, get_meter_provider, get_tracer_provider


def test_driver_defaults():
    options = DriverOptions()
    assert options.tracer_provider is get_tracer_provider()
    assert options.meter_provider is get_meter_provider()
    assert options.trace.span_name_formatter is tracer.format_span_name
    assert options.trace.error_to_span_status is tracer.span_status_from_error
    assert options.trace.query_tracer is tracer.trace_no_query
    assert not any([options.trace.allow_root, options.trace.ping, options.trace.rows_next])


def test_stats_default_interval():
    assert StatsOptions().minimum_read_db_stats_interval == timedelta(seconds=1)


def test_trace_all():
    options = DriverOptions()
    trace_all().apply_driver_options(options)
    t = options.trace
    assert t.query_tracer is tracer.trace_query_with_args
    assert all([t.allow_root, t.ping, t.rows_next, t.rows_close, t.rows_affected, t.last_insert_id])


@pytest.mark.parametrize(
    "option, flag",
    [
        (allow_root, "allow_root"),
        (trace_ping, "ping"),
        (trace_rows_next, "rows_next"),
        (trace_rows_close, "rows_close"),
        (trace_rows_affected, "rows_affected"),
        (trace_last_insert_id, "last_insert_id"),
    ],
)
def test_single_flags(option, flag):
    options = DriverOptions()
    option().apply_driver_options(options)
    assert getattr(options.trace, flag) is True


def test_query_tracer_options():
    options = DriverOptions()
    trace_query_without_args().apply_driver_options(options)
    assert options.trace.query_tracer is tracer.trace_query_without_args
    trace_query_with_args().apply_driver_options(options)
    assert options.trace.query_tracer is tracer.trace_query_with_args
    custom = lambda ctx, q, a: []  # noqa: E731
    trace_query(custom).apply_driver_options(options)
    assert options.trace.query_tracer is custom


def test_disable_err_skip_and_formatter():
    options = DriverOptions()
    disable_err_skip().apply_driver_options(options)
    formatter = lambda ctx, m: m  # noqa: E731
    with_span_name_formatter(formatter).apply_driver_options(options)
    assert options.trace.error_to_span_status is tracer.span_status_from_error_ignore_err_skip
    assert options.trace.span_name_formatter is formatter


def test_default_attributes_apply_to_both():
    system = KeyValue("db.system", "sqlite")
    driver, stats = DriverOptions(), StatsOptions()
    for option in (with_instance_name("main"), with_database_name("app"), with_system(system)):
        option.apply_driver_options(driver)
        option.apply_stats_options(stats)
    expected = [KeyValue(DB_INSTANCE, "main"), KeyValue(DB_NAME, "app"), system]
    assert driver.default_attributes == expected
    assert stats.default_attributes == expected


def test_with_default_attributes_accumulates():
    options = DriverOptions()
    with_default_attributes(KeyValue("a", 1)).apply_driver_options(options)
    with_default_attributes(KeyValue("b", 2), KeyValue("c", 3)).apply_driver_options(options)
    assert [kv.key for kv in options.default_attributes] == ["a", "b", "c"]


def test_meter_provider_applies_to_both():
    provider = MeterProvider()
    driver, stats = DriverOptions(), StatsOptions()
    option = with_meter_provider(provider)
    option.apply_driver_options(driver)
    option.apply_stats_options(stats)
    assert driver.meter_provider is provider
    assert stats.meter_provider is provider


def test_driver_only_option_rejected_for_stats():
    provider = TracerProvider()
    option = with_tracer_provider(provider)
    driver = DriverOptions()
    option.apply_driver_options(driver)
    assert driver.tracer_provider is provider
    with pytest.raises(TypeError):
        option.apply_stats_options(StatsOptions())


def test_stats_only_option_rejected_for_driver():
    option = with_minimum_read_db_stats_interval(timedelta(seconds=5))
    stats = StatsOptions()
    option.apply_stats_options(stats)
    assert stats.minimum_read_db_stats_interval == timedelta(seconds=5)
    with pytest.raises(TypeError):
        option.apply_driver_options(DriverOptions())