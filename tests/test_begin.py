from types import SimpleNamespace

import pytest

from sqltel.attribute import DB_OPERATION, DB_SQL_STATUS_ERROR, DB_SQL_STATUS_OK, KeyValue
from sqltel.begin import (
    METRIC_METHOD_BEGIN,
    TRACE_METHOD_BEGIN,
    TxOptions,
    begin_stats,
    begin_trace,
    begin_wrap_tx,
    ensure_begin,
    make_begin_middlewares,
)
from sqltel.middleware import chain_middlewares
from sqltel.recorder import MethodRecorder
from sqltel.telemetry import Context, MeterProvider, TracerProvider
from sqltel.tracer import MethodTracer
from sqltel.transaction import METRIC_METHOD_COMMIT, TRACE_METHOD_COMMIT, Transaction


class FakeTx:
    def __init__(self):
        self.committed = False

    def commit(self):
        self.committed = True

    def rollback(self):
        return None


class ContextConn:
    def __init__(self):
        self.seen_options = []
        self.tx = FakeTx()

    def begin_tx(self, ctx, opts):
        self.seen_options.append(opts)
        return self.tx

    def begin(self):
        raise AssertionError("plain begin must not be used")


class LegacyConn:
    def __init__(self):
        self.tx = FakeTx()

    def begin(self):
        return self.tx


class FailingConn:
    def begin(self):
        raise ConnectionError("refused")


def _tools(allow_root=True):
    meter = MeterProvider().meter("test")
    calls = meter.counter("calls")
    recorder = MethodRecorder(meter.histogram("latency").record, calls.add)
    provider = TracerProvider()
    tracer = MethodTracer(provider.tracer("test"), allow_root=allow_root)
    return SimpleNamespace(recorder=recorder, calls=calls, tracer=tracer, provider=provider)


def test_ensure_begin_prefers_begin_tx():
    conn = ContextConn()
    options = TxOptions(read_only=True)
    assert ensure_begin(conn)(Context(), options) is conn.tx
    assert conn.seen_options == [options]


def test_ensure_begin_falls_back_to_plain_begin():
    conn = LegacyConn()
    assert ensure_begin(conn)(Context(), TxOptions()) is conn.tx


def test_full_chain_wraps_transaction():
    tools = _tools()
    conn = LegacyConn()
    begin = chain_middlewares(make_begin_middlewares(tools.recorder, tools.tracer), ensure_begin(conn))
    tx = begin(Context(), TxOptions())
    assert isinstance(tx, Transaction)
    tx.commit()
    assert conn.tx.committed
    operations = [dict((a.key, a.value) for a in attrs)[DB_OPERATION] for _, attrs in tools.calls.measurements]
    assert operations == [METRIC_METHOD_BEGIN, METRIC_METHOD_COMMIT]
    begin_span, commit_span = tools.provider.finished_spans
    assert begin_span.attributes[DB_OPERATION] == TRACE_METHOD_BEGIN
    assert commit_span.attributes[DB_OPERATION] == TRACE_METHOD_COMMIT
    assert commit_span.parent == begin_span.context


def test_begin_error_is_raised_and_recorded():
    tools = _tools()
    begin = chain_middlewares(make_begin_middlewares(tools.recorder, tools.tracer), ensure_begin(FailingConn()))
    with pytest.raises(ConnectionError):
        begin(Context(), TxOptions())
    _, attrs = tools.calls.measurements[0]
    assert DB_SQL_STATUS_ERROR in attrs
    assert len(tools.provider.finished_spans) == 1


def test_begin_stats_alone_records_ok():
    tools = _tools()
    conn = LegacyConn()
    tx = chain_middlewares([begin_stats(tools.recorder)], ensure_begin(conn))(Context(), TxOptions())
    assert tx is conn.tx
    _, attrs = tools.calls.measurements[0]
    assert KeyValue(DB_OPERATION, METRIC_METHOD_BEGIN) in attrs
    assert DB_SQL_STATUS_OK in attrs


def test_wrapped_tx_without_span_has_no_commit_span():
    tools = _tools(allow_root=False)
    conn = LegacyConn()
    begin = chain_middlewares(
        [begin_trace(tools.tracer), begin_wrap_tx(tools.recorder, tools.tracer)], ensure_begin(conn)
    )
    tx = begin(Context(), TxOptions())
    tx.commit()
    assert conn.tx.committed
    assert tools.provider.finished_spans == []
    _, attrs = tools.calls.measurements[0]
    assert KeyValue(DB_OPERATION, METRIC_METHOD_COMMIT) in attrs