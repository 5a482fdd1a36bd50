"""Tests for counter helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from overlay_sensors.sensors.counters import CounterRate, read_int


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestReadInt:
    """Tests for read_int()."""

    def test_reads_value(self, tmp_path: Path) -> None:
        path = tmp_path / "value"
        path.write_text("42\n")
        assert read_int(path) == 42

    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_int(tmp_path / "missing") is None

    def test_garbage(self, tmp_path: Path) -> None:
        path = tmp_path / "value"
        path.write_text("N/A\n")
        assert read_int(path) is None


class TestCounterRate:
    """Tests for CounterRate.update()."""

    def test_first_sample_primes(self) -> None:
        rate = CounterRate(clock=FakeClock())
        assert rate.update(100) is None

    def test_rate_per_second(self) -> None:
        clock = FakeClock()
        rate = CounterRate(scale=2.0, clock=clock)
        rate.update(100)
        clock.now = 4.0
        assert rate.update(300) == pytest.approx(100.0)

    def test_wrap(self) -> None:
        clock = FakeClock()
        rate = CounterRate(wrap=1000, clock=clock)
        rate.update(900)
        clock.now = 1.0
        assert rate.update(100) == pytest.approx(200.0)

    def test_reset_without_wrap(self) -> None:
        clock = FakeClock()
        rate = CounterRate(clock=clock)
        rate.update(900)
        clock.now = 1.0
        assert rate.update(100) is None
        clock.now = 2.0
        assert rate.update(150) == pytest.approx(50.0)

    def test_zero_elapsed(self) -> None:
        rate = CounterRate(clock=FakeClock())
        rate.update(1)
        assert rate.update(2) is None

    def test_missing_sample(self) -> None:
        clock = FakeClock()
        rate = CounterRate(clock=clock)
        rate.update(10)
        clock.now = 1.0
        assert rate.update(None) is None
        clock.now = 2.0
        assert rate.update(30) == pytest.approx(10.0)
