"""
linktrace - Throughput and delay analysis for link event traces
"""

__version__ = "0.1.0"

from .aggregator import TraceAccumulator, aggregate_events
from .delay_stats import DelayStatistics, compute_delay_statistics, nearest_rank_percentile
from .errors import (
    ConfigError,
    DegenerateTraceError,
    LinkTraceError,
    PlotError,
    TraceFormatError,
    TraceStructureError,
)
from .signal_delay import SignalDelayProfile, reconstruct_signal_delay
from .timeseries import build_time_series, format_rows, gnuplot_script
from .trace_parser import Event, EventKind, TraceParser, parse_trace

__all__ = [
    "TraceAccumulator",
    "aggregate_events",
    "DelayStatistics",
    "compute_delay_statistics",
    "nearest_rank_percentile",
    "ConfigError",
    "DegenerateTraceError",
    "LinkTraceError",
    "PlotError",
    "TraceFormatError",
    "TraceStructureError",
    "SignalDelayProfile",
    "reconstruct_signal_delay",
    "build_time_series",
    "format_rows",
    "gnuplot_script",
    "Event",
    "EventKind",
    "TraceParser",
    "parse_trace",
]
