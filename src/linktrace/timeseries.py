"""
timeseries.py - Convert per-bin totals into a plottable rate series

One row per bin from the first to the last bin that holds any event:

    time_s  capacity_mbps  ingress_mbps  throughput_mbps  buffer_bits

Rates are bin bits divided by the bin width in seconds. buffer_bits is the
running sum of arrival bits minus departure bits up to and including the bin.

The same rows feed three outputs: a pandas DataFrame (CSV, matplotlib),
plain text rows, and a gnuplot script with inline data blocks.
"""

from typing import List, Optional

import pandas as pd

from .aggregator import TraceAccumulator
from .delay_stats import DelayStatistics
from .errors import DegenerateTraceError

SERIES_COLUMNS = [
    'bin',
    'time_s',
    'capacity_mbps',
    'ingress_mbps',
    'throughput_mbps',
    'buffer_bits',
]


def build_time_series(acc: TraceAccumulator) -> pd.DataFrame:
    """
    Build the binned rate series.

    Raises:
        DegenerateTraceError: if all events fall into a single bin
    """
    acc.require_events()

    keys = set(acc.capacity_bins) | set(acc.arrival_bins) | set(acc.departure_bins)
    first_bin = min(keys)
    last_bin = max(keys)
    if first_bin == last_bin:
        raise DegenerateTraceError(
            f"bin width too large: all events fall into one {acc.bin_width_ms} ms bin")

    bin_seconds = acc.bin_width_ms / 1000.0
    buffer_bits = 0
    rows = []

    for bin_index in range(first_bin, last_bin + 1):
        capacity = acc.capacity_bins.get(bin_index, 0)
        arrivals = acc.arrival_bins.get(bin_index, 0)
        departures = acc.departure_bins.get(bin_index, 0)

        buffer_bits += arrivals - departures

        rows.append({
            'bin': bin_index,
            'time_s': bin_index * acc.bin_width_ms / 1000.0,
            'capacity_mbps': capacity / bin_seconds / 1e6,
            'ingress_mbps': arrivals / bin_seconds / 1e6,
            'throughput_mbps': departures / bin_seconds / 1e6,
            'buffer_bits': buffer_bits,
        })

    return pd.DataFrame(rows, columns=SERIES_COLUMNS)


def format_rows(frame: pd.DataFrame) -> List[str]:
    """Text rows: time_seconds capacity_rate arrival_rate departure_rate buffer_occupancy."""
    return [
        f"{row.time_s:.3f} {row.capacity_mbps:.6f} {row.ingress_mbps:.6f} "
        f"{row.throughput_mbps:.6f} {int(row.buffer_bits)}"
        for row in frame.itertuples(index=False)
    ]


def _quote(text) -> str:
    """Escape text for a double-quoted gnuplot string."""
    return str(text).replace("\\", "\\\\").replace('"', '\\"')


def gnuplot_script(
    frame: pd.DataFrame,
    stats: DelayStatistics,
    terminal: str = 'svg',
    size: str = '1024,560',
    output_path: Optional[str] = None,
    title: Optional[str] = None,
) -> str:
    """
    Gnuplot program drawing capacity, ingress and throughput.

    Capacity is a filled region, ingress and throughput are lines. Each of
    the three plot sources reads the same rows from an inline block ended
    by 'e'.
    """
    rows = format_rows(frame)
    x_max = frame['time_s'].iloc[-1]

    lines = [
        'set xlabel "time (s)"',
        'set ylabel "throughput (Mbits/s)"',
        'set key center outside top horizontal',
        'set style fill solid 0.2 noborder',
        f'set terminal {terminal} size {size}',
    ]
    if title:
        lines.append(f'set title "{_quote(title)}"')
    lines.append(f'set output "{_quote(output_path)}"' if output_path else 'set output')

    lines.append(
        f'plot [{frame["time_s"].iloc[0]:g}:{x_max:g}] '
        f'"-" using 1:2 title "Capacity (mean {stats.average_capacity_mbps:.2f} Mbits/s)" '
        'with filledcurves above x1 lw 0.5, '
        f'"-" using 1:3 title "Traffic ingress (mean {stats.average_ingress_mbps:.2f} Mbits/s)" '
        'with lines lw 4, '
        f'"-" using 1:4 title "Throughput (mean {stats.average_throughput_mbps:.2f} Mbits/s)" '
        'with lines lw 4'
    )

    for _ in range(3):
        lines.extend(rows)
        lines.append('e')

    return '\n'.join(lines) + '\n'
