"""
delay_stats.py - Throughput, utilization and queueing delay statistics

Percentiles use the nearest-rank convention: sort ascending and take the
element at index floor(fraction * n), without interpolation (numpy.percentile
interpolates by default and gives different numbers).
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from .aggregator import TraceAccumulator
from .errors import ConfigError, DegenerateTraceError

logger = logging.getLogger(__name__)


@dataclass
class DelayStatistics:
    """Summary statistics for one trace."""
    duration_s: float
    average_capacity_mbps: float
    average_ingress_mbps: float
    average_throughput_mbps: float
    utilization_percent: Optional[float]  # None without capacity samples

    percentile: float
    delay_percentile_ms: float
    average_delay_ms: float
    delay_min_ms: float
    delay_max_ms: float
    departure_count: int

    def __str__(self) -> str:
        return (
            f"throughput={self.average_throughput_mbps:.2f}Mbps, "
            f"p{self.percentile * 100:g}={self.delay_percentile_ms:.1f}ms, "
            f"mean={self.average_delay_ms:.1f}ms"
        )


def nearest_rank_percentile(
    values: Union[Sequence[float], np.ndarray],
    fraction: float = 0.95
) -> float:
    """
    Nearest-rank percentile without interpolation.

    Args:
        values: Samples, any order
        fraction: Percentile as a fraction in [0, 1]

    Returns:
        sorted(values)[floor(fraction * n)], clamped to the last element
    """
    if not 0.0 <= fraction <= 1.0:
        raise ConfigError(f"percentile must be between 0 and 1, got {fraction}")

    sorted_values = np.sort(np.asarray(values, dtype=float))
    n = len(sorted_values)
    if n == 0:
        raise DegenerateTraceError("cannot take a percentile of an empty sample set")

    return float(sorted_values[min(int(n * fraction), n - 1)])


def mean_rate_mbps(total_bits: int, duration_s: float) -> float:
    return total_bits / duration_s / 1e6


def compute_delay_statistics(acc: TraceAccumulator, percentile: float = 0.95) -> DelayStatistics:
    """
    Compute average rates, utilization and delay statistics.

    Raises:
        DegenerateTraceError: no events, zero duration, or no departures
    """
    acc.require_events()

    duration_s = acc.duration_s
    if duration_s <= 0:
        raise DegenerateTraceError(
            "trace duration is zero (first and last event share a timestamp)")

    if not acc.delays_ms:
        raise DegenerateTraceError("must have at least one departure event")

    average_capacity = mean_rate_mbps(acc.capacity_bits, duration_s)
    average_ingress = mean_rate_mbps(acc.arrival_bits, duration_s)
    average_throughput = mean_rate_mbps(acc.departure_bits, duration_s)

    if acc.capacity_bits > 0:
        utilization = 100.0 * average_throughput / average_capacity
    else:
        logger.warning("No capacity samples in trace; utilization is undefined")
        utilization = None

    delays = np.asarray(acc.delays_ms, dtype=float)

    return DelayStatistics(
        duration_s=duration_s,
        average_capacity_mbps=average_capacity,
        average_ingress_mbps=average_ingress,
        average_throughput_mbps=average_throughput,
        utilization_percent=utilization,
        percentile=percentile,
        delay_percentile_ms=nearest_rank_percentile(delays, percentile),
        average_delay_ms=float(np.mean(delays)),
        delay_min_ms=float(np.min(delays)),
        delay_max_ms=float(np.max(delays)),
        departure_count=len(delays),
    )
