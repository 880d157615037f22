"""Validates request start/elapsed correlation."""

from __future__ import annotations

import pytest

from HookedHTTP.timing import PerformanceCorrelator


def _fake_clock(*ticks: float):
    values = iter(ticks)
    return lambda: next(values)


def test_consume_elapsed_returns_milliseconds_and_removes_entry():
    correlator = PerformanceCorrelator(clock=_fake_clock(1.0, 1.25))
    correlator.record_start("abc")
    assert correlator.pending == 1

    assert correlator.consume_elapsed("abc") == pytest.approx(250.0)
    assert correlator.pending == 0


def test_consume_without_record_is_unavailable():
    correlator = PerformanceCorrelator()
    assert correlator.consume_elapsed("missing") is None


def test_second_consume_is_unavailable():
    correlator = PerformanceCorrelator(clock=_fake_clock(0.0, 0.5))
    correlator.record_start("abc")
    assert correlator.consume_elapsed("abc") is not None
    assert correlator.consume_elapsed("abc") is None


def test_interleaved_requests_do_not_collide():
    correlator = PerformanceCorrelator(clock=_fake_clock(0.0, 0.1, 0.3, 0.6))
    correlator.record_start("a")
    correlator.record_start("b")

    assert correlator.consume_elapsed("b") == pytest.approx(200.0)
    assert correlator.consume_elapsed("a") == pytest.approx(600.0)


def test_elapsed_is_never_negative():
    correlator = PerformanceCorrelator(clock=_fake_clock(5.0, 4.0))
    correlator.record_start("abc")
    assert correlator.consume_elapsed("abc") == 0.0


def test_real_clock_elapsed_is_non_negative():
    correlator = PerformanceCorrelator()
    for request_id in map(str, range(5)):
        correlator.record_start(request_id)
    elapsed = [correlator.consume_elapsed(str(i)) for i in range(5)]
    assert all(value is not None and value >= 0.0 for value in elapsed)


def test_clear_drops_orphaned_records():
    correlator = PerformanceCorrelator()
    correlator.record_start("aborted")
    correlator.clear()
    assert correlator.pending == 0
