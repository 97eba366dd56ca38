"""
aggregator.py - Bucket trace events into fixed-width time bins

TraceAccumulator owns every container filled during the forward pass:
per-bin bit totals for each event kind, trace-wide sums, the trace span,
the departure delay samples and the directly observed signal delays.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .errors import ConfigError, DegenerateTraceError
from .trace_parser import Event, EventKind


@dataclass
class TraceAccumulator:
    """Totals accumulated from one trace."""
    bin_width_ms: int

    capacity_bins: Dict[int, int] = field(default_factory=lambda: defaultdict(int))
    arrival_bins: Dict[int, int] = field(default_factory=lambda: defaultdict(int))
    departure_bins: Dict[int, int] = field(default_factory=lambda: defaultdict(int))

    capacity_bits: int = 0
    arrival_bits: int = 0
    departure_bits: int = 0

    first_timestamp_ms: Optional[int] = None
    last_timestamp_ms: Optional[int] = None
    event_count: int = 0

    # Departure delay samples, in trace order
    delays_ms: List[float] = field(default_factory=list)
    departure_times_ms: List[int] = field(default_factory=list)

    # origin millisecond -> minimum observed delay
    signal_delays: Dict[int, float] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.bin_width_ms, bool) or not isinstance(self.bin_width_ms, int) \
                or self.bin_width_ms <= 0:
            raise ConfigError(f"bin_width_ms must be a positive integer, got {self.bin_width_ms!r}")

    def add(self, event: Event):
        """Accumulate one retained event."""
        bin_index = event.timestamp_ms // self.bin_width_ms
        bits = event.num_bits

        if self.first_timestamp_ms is None:
            self.first_timestamp_ms = event.timestamp_ms
            self.last_timestamp_ms = event.timestamp_ms
        else:
            self.last_timestamp_ms = max(self.last_timestamp_ms, event.timestamp_ms)
        self.event_count += 1

        if event.kind is EventKind.ARRIVAL:
            self.arrival_bins[bin_index] += bits
            self.arrival_bits += bits
        elif event.kind is EventKind.CAPACITY:
            self.capacity_bins[bin_index] += bits
            self.capacity_bits += bits
        else:
            self.departure_bins[bin_index] += bits
            self.departure_bits += bits
            self.delays_ms.append(event.delay_ms)
            self.departure_times_ms.append(event.timestamp_ms)

            origin = event.origin_ms
            previous = self.signal_delays.get(origin)
            if previous is None or event.delay_ms < previous:
                self.signal_delays[origin] = event.delay_ms

    def bin_totals(self, kind: EventKind) -> Dict[int, int]:
        """Per-bin bit totals for one event kind."""
        return {
            EventKind.ARRIVAL: self.arrival_bins,
            EventKind.CAPACITY: self.capacity_bins,
            EventKind.DEPARTURE: self.departure_bins,
        }[kind]

    def total_bits(self, kind: EventKind) -> int:
        return {
            EventKind.ARRIVAL: self.arrival_bits,
            EventKind.CAPACITY: self.capacity_bits,
            EventKind.DEPARTURE: self.departure_bits,
        }[kind]

    @property
    def duration_s(self) -> float:
        if self.first_timestamp_ms is None:
            return 0.0
        return (self.last_timestamp_ms - self.first_timestamp_ms) / 1000.0

    def require_events(self):
        if self.event_count == 0:
            raise DegenerateTraceError("must have at least one event")


def aggregate_events(events: Iterable[Event], bin_width_ms: int) -> TraceAccumulator:
    """Consume the event stream into a new TraceAccumulator."""
    acc = TraceAccumulator(bin_width_ms=bin_width_ms)
    for event in events:
        acc.add(event)
    return acc
