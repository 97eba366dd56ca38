"""Tests for bin aggregation."""

import numpy as np
import pytest

from linktrace.aggregator import TraceAccumulator, aggregate_events
from linktrace.errors import ConfigError, DegenerateTraceError
from linktrace.trace_parser import Event, EventKind, parse_trace


def departure(ts, num_bytes, delay):
    return Event(timestamp_ms=ts, kind=EventKind.DEPARTURE, num_bytes=num_bytes, delay_ms=delay)


class TestTraceAccumulator:
    """Test per-bin and global accumulation."""

    def test_scenario_a_bins(self, scenario_a_lines):
        acc = aggregate_events(parse_trace(scenario_a_lines), bin_width_ms=100)

        assert dict(acc.capacity_bins) == {0: 10000}
        assert dict(acc.arrival_bins) == {0: 5000}
        assert dict(acc.departure_bins) == {1: 5000}
        assert acc.capacity_bits == 10000
        assert acc.arrival_bits == 5000
        assert acc.departure_bits == 5000
        assert acc.first_timestamp_ms == 0
        assert acc.last_timestamp_ms == 100
        assert acc.duration_s == pytest.approx(0.1)
        assert acc.delays_ms == [50.0]
        assert acc.signal_delays == {50: 50.0}

    def test_last_timestamp_is_maximum_not_latest(self):
        acc = TraceAccumulator(bin_width_ms=10)
        for ts in (30, 90, 40):
            acc.add(Event(timestamp_ms=ts, kind=EventKind.ARRIVAL, num_bytes=1))

        assert acc.first_timestamp_ms == 30
        assert acc.last_timestamp_ms == 90

    def test_signal_delay_keeps_minimum(self):
        """Scenario C: same origin ms with delays 45 and 30."""
        acc = TraceAccumulator(bin_width_ms=10)
        acc.add(departure(145, 100, 45))
        acc.add(departure(130, 100, 30))
        acc.add(departure(150, 100, 50))

        assert acc.signal_delays == {100: 30}
        assert acc.delays_ms == [45, 30, 50]

    def test_signal_delay_order_independent(self):
        acc = TraceAccumulator(bin_width_ms=10)
        acc.add(departure(130, 100, 30))
        acc.add(departure(145, 100, 45))

        assert acc.signal_delays == {100: 30}

    def test_binning_matches_running_sums(self):
        """Sum over bins equals the independently tracked total for every kind."""
        np.random.seed(42)
        acc = TraceAccumulator(bin_width_ms=37)
        kinds = list(EventKind)
        for _ in range(500):
            ts = int(np.random.randint(0, 10000))
            kind = kinds[np.random.randint(0, 3)]
            delay = float(np.random.randint(0, ts + 1)) if kind is EventKind.DEPARTURE else None
            acc.add(Event(timestamp_ms=ts, kind=kind,
                          num_bytes=int(np.random.randint(0, 1500)), delay_ms=delay))

        for kind in EventKind:
            assert sum(acc.bin_totals(kind).values()) == acc.total_bits(kind)

    def test_time_begin_excluded_from_bins(self, make_trace):
        lines = make_trace([(0, '+', 100), (10, '+', 100), (20, '-', 100, 5)])
        acc = aggregate_events(parse_trace(lines, time_begin_ms=10), bin_width_ms=10)

        assert 0 not in acc.arrival_bins
        assert acc.arrival_bits == 800
        assert acc.first_timestamp_ms == 10
        assert acc.event_count == 2


class TestAccumulatorErrors:
    """Test degenerate inputs."""

    @pytest.mark.parametrize("width", [0, -5, 2.5, True])
    def test_invalid_bin_width(self, width):
        with pytest.raises(ConfigError):
            TraceAccumulator(bin_width_ms=width)

    def test_no_events(self):
        """Scenario E: base timestamp only."""
        acc = aggregate_events(parse_trace(["# base timestamp: 7\n"]), bin_width_ms=100)
        with pytest.raises(DegenerateTraceError, match="at least one event"):
            acc.require_events()
