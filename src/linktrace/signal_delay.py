"""
signal_delay.py - Reconstruct per-millisecond signal delay

The signal delay at millisecond t is the smallest delay a message entering
the link at t could have seen. Departures give direct observations keyed by
their origin millisecond (departure time minus queueing delay). Instants with
no observation are filled backwards: a message sent at t can wait one
millisecond and leave with whatever was sent at t+1, so

    signal_delay[t] = signal_delay[t + 1] + 1

for every unobserved t between the smallest and largest observed origin.
"""

from dataclasses import dataclass
from typing import Dict

import numpy as np

from .delay_stats import nearest_rank_percentile
from .errors import DegenerateTraceError


@dataclass
class SignalDelayProfile:
    """Dense signal delay over [start_ms, start_ms + len - 1]."""
    start_ms: int
    delays_ms: np.ndarray
    observed: np.ndarray  # True where the value is a direct observation

    def __len__(self) -> int:
        return len(self.delays_ms)

    @property
    def end_ms(self) -> int:
        return self.start_ms + len(self.delays_ms) - 1

    def times_ms(self) -> np.ndarray:
        return np.arange(self.start_ms, self.end_ms + 1)

    def as_dict(self) -> Dict[int, float]:
        return {int(t): float(d) for t, d in zip(self.times_ms(), self.delays_ms)}

    def percentile(self, fraction: float = 0.95) -> float:
        return nearest_rank_percentile(self.delays_ms, fraction)


def reconstruct_signal_delay(
    signal_delays: Dict[int, float],
    clamp: bool = False
) -> SignalDelayProfile:
    """
    Densify observed signal delays over their whole time range.

    Args:
        signal_delays: origin millisecond -> minimum observed delay
        clamp: Also lower observed values above signal_delay[t + 1] + 1,
            so the bound holds at every millisecond

    Returns:
        SignalDelayProfile with no gaps
    """
    if not signal_delays:
        raise DegenerateTraceError("must have at least one departure event")

    t_min = min(signal_delays)
    t_max = max(signal_delays)
    size = t_max - t_min + 1

    delays = np.full(size, np.nan)
    observed = np.zeros(size, dtype=bool)
    for t, delay in signal_delays.items():
        delays[t - t_min] = delay
        observed[t - t_min] = True

    for i in range(size - 2, -1, -1):
        bound = delays[i + 1] + 1
        if not observed[i] or (clamp and delays[i] > bound):
            delays[i] = bound

    return SignalDelayProfile(start_ms=t_min, delays_ms=delays, observed=observed)
