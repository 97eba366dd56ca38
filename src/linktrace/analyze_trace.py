#!/usr/bin/env python3
"""
analyze_trace.py - Summarize a link trace and export its throughput series

This script processes a link event trace to extract:
- Average capacity, ingress and throughput, and link utilization
- Per-packet queueing delay percentile and mean
- Signal delay (minimum achievable delay for every millisecond)
- A binned capacity / ingress / throughput / buffer series for plotting

Usage:
    linktrace-graph --bin-width-ms 500 --time-begin-ms 0 trace.log
    linktrace-graph --config configs/default.yaml --plot throughput.png < trace.log
    linktrace-graph --bin-width-ms 100 --time-begin-ms 0 trace.log \\
        --csv series.csv --summary-json summary.json --gnuplot-output graph.svg
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .aggregator import TraceAccumulator, aggregate_events
from .config import apply_overrides, load_config, validate_config
from .delay_stats import DelayStatistics, compute_delay_statistics
from .errors import LinkTraceError
from .logger_config import setup_logger
from .plot_results import pipe_to_gnuplot, plot_delay, plot_throughput
from .signal_delay import SignalDelayProfile, reconstruct_signal_delay
from .timeseries import build_time_series, format_rows, gnuplot_script
from .trace_parser import TraceParser

logger = logging.getLogger(__name__)


@dataclass
class TraceReport:
    """Everything produced by one analysis run."""
    stats: DelayStatistics
    signal_delay: SignalDelayProfile
    series: pd.DataFrame
    accumulator: TraceAccumulator
    signal_delay_percentile_ms: float

    def summary_lines(self, include_signal_delay: bool = False) -> List[str]:
        """Fixed-format report lines."""
        stats = self.stats
        pct_label = f"{stats.percentile * 100:g}"
        pct_label += _ordinal_suffix(pct_label)

        if stats.utilization_percent is None:
            utilization = "utilization undefined"
        else:
            utilization = f"{stats.utilization_percent:.1f}% utilization"

        lines = [
            f"Average throughput: {stats.average_throughput_mbps:.2f} Mbits/s ({utilization})",
            f"{pct_label} percentile per-packet queueing delay: {stats.delay_percentile_ms:.0f} ms",
            f"Average per-packet queueing delay: {stats.average_delay_ms:.0f} ms",
        ]
        if include_signal_delay:
            lines.append(
                f"{pct_label} percentile signal delay: {self.signal_delay_percentile_ms:.0f} ms")
        return lines

    def to_dict(self) -> Dict[str, Any]:
        acc = self.accumulator
        return {
            'bin_width_ms': acc.bin_width_ms,
            'first_timestamp_ms': acc.first_timestamp_ms,
            'last_timestamp_ms': acc.last_timestamp_ms,
            'event_count': acc.event_count,
            'capacity_bits': acc.capacity_bits,
            'arrival_bits': acc.arrival_bits,
            'departure_bits': acc.departure_bits,
            'stats': asdict(self.stats),
            'signal_delay_percentile_ms': self.signal_delay_percentile_ms,
            'signal_delay_range_ms': [self.signal_delay.start_ms, self.signal_delay.end_ms],
            'n_bins': len(self.series),
        }


def _ordinal_suffix(number: str) -> str:
    if not number.isdigit():
        return "th"
    value = int(number)
    if 10 <= value % 100 <= 20:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(value % 10, "th")


class TraceAnalyzer:
    """Run the full pipeline over one trace."""

    def __init__(
        self,
        bin_width_ms: int,
        time_begin_ms: int = 0,
        percentile: float = 0.95,
        clamp_signal_delay: bool = False,
    ):
        """Initialize trace analyzer.

        Args:
            bin_width_ms: Width of aggregation bins in milliseconds
            time_begin_ms: Drop events whose corrected timestamp is earlier
            percentile: Fraction used for the delay percentiles
            clamp_signal_delay: Enforce the +1 ms bound on observed values too
        """
        self.bin_width_ms = bin_width_ms
        self.time_begin_ms = time_begin_ms
        self.percentile = percentile
        self.clamp_signal_delay = clamp_signal_delay

    def analyze(self, lines: Iterable[str]) -> TraceReport:
        """Parse, aggregate and summarize the trace lines."""
        parser = TraceParser(time_begin_ms=self.time_begin_ms)
        acc = aggregate_events(parser.parse(lines), self.bin_width_ms)
        acc.require_events()

        logger.info(f"Processed {acc.event_count} events "
                    f"({parser.events_discarded} before time_begin)")

        series = build_time_series(acc)
        stats = compute_delay_statistics(acc, percentile=self.percentile)
        profile = reconstruct_signal_delay(acc.signal_delays, clamp=self.clamp_signal_delay)

        logger.info(f"Trace duration: {stats.duration_s:.2f}s, {len(series)} bins, "
                    f"{stats.departure_count} departures")
        logger.debug(f"Signal delay: {len(profile)} ms reconstructed, "
                     f"{int(profile.observed.sum())} observed")

        return TraceReport(
            stats=stats,
            signal_delay=profile,
            series=series,
            accumulator=acc,
            signal_delay_percentile_ms=profile.percentile(self.percentile),
        )


def write_outputs(report: TraceReport, args: argparse.Namespace, config: Dict[str, Any]):
    """Write every output file the user asked for."""
    if args.csv:
        report.series.to_csv(args.csv, index=False)
        logger.info(f"Saved: {args.csv}")

    if args.rows:
        with open(args.rows, 'w') as f:
            f.write('\n'.join(format_rows(report.series)) + '\n')
        logger.info(f"Saved: {args.rows}")

    if args.summary_json:
        with open(args.summary_json, 'w') as f:
            json.dump(report.to_dict(), f, indent=2)
        logger.info(f"Saved: {args.summary_json}")

    if args.plot:
        plot_throughput(report.series, report.stats, args.plot, config['plot'])

    if args.delay_plot:
        plot_delay(report.accumulator, report.signal_delay, args.delay_plot, config['plot'])

    gp = config['gnuplot']
    if args.gnuplot_script:
        script = gnuplot_script(report.series, report.stats,
                                terminal=gp['terminal'], size=gp['size'],
                                title=config['plot']['title'])
        with open(args.gnuplot_script, 'w') as f:
            f.write(script)
        logger.info(f"Saved: {args.gnuplot_script}")

    if args.gnuplot_output:
        Path(args.gnuplot_output).parent.mkdir(parents=True, exist_ok=True)
        script = gnuplot_script(report.series, report.stats,
                                terminal=gp['terminal'], size=gp['size'],
                                output_path=args.gnuplot_output,
                                title=config['plot']['title'])
        pipe_to_gnuplot(script, executable=gp['executable'])
        logger.info(f"Saved: {args.gnuplot_output}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Link trace throughput and delay analyzer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Report only
  %(prog)s --bin-width-ms 500 --time-begin-ms 0 trace.log

  # Read stdin, render with matplotlib
  %(prog)s --bin-width-ms 500 --time-begin-ms 0 --plot graph.png < trace.log

  # Config file plus overrides
  %(prog)s --config configs/default.yaml --set plot.dpi=300 --plot graph.pdf trace.log
""")

    parser.add_argument('trace', nargs='?',
                        help='Trace file (default: read standard input)')
    parser.add_argument('--config', '-c',
                        help='YAML configuration file')
    parser.add_argument('--set', '-s', metavar='KEY=VALUE', action='append', default=[],
                        help='Override a configuration value (repeatable)')
    parser.add_argument('--bin-width-ms', type=int,
                        help='Time bin width in milliseconds')
    parser.add_argument('--time-begin-ms', type=int,
                        help='Discard events with corrected timestamp below this')
    parser.add_argument('--percentile', type=float,
                        help='Delay percentile as a fraction (default: 0.95)')
    parser.add_argument('--clamp-signal-delay', action='store_true', default=None,
                        help='Lower observed signal delays that exceed the next millisecond + 1')
    parser.add_argument('--signal-delay', action='store_true',
                        help='Add the signal delay percentile to the report')

    parser.add_argument('--plot', help='Throughput graph (png, svg or pdf)')
    parser.add_argument('--delay-plot', help='Queueing and signal delay graph')
    parser.add_argument('--gnuplot-script', help='Write gnuplot script with inline data')
    parser.add_argument('--gnuplot-output', help='Render through gnuplot to this file')
    parser.add_argument('--csv', help='Write the binned series as CSV')
    parser.add_argument('--rows', help='Write the binned series as plain text rows')
    parser.add_argument('--summary-json', help='Write summary statistics as JSON')

    parser.add_argument('--log-level',
                        help='Logging level (DEBUG, INFO, WARNING, ERROR)')
    parser.add_argument('--log-file', help='Also write log messages to this file')
    return parser


def resolve_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Merge defaults, config file, --set overrides and explicit flags."""
    config = load_config(args.config)
    apply_overrides(config, args.set)

    if args.bin_width_ms is not None:
        config['bin_width_ms'] = args.bin_width_ms
    if args.time_begin_ms is not None:
        config['time_begin_ms'] = args.time_begin_ms
    if args.percentile is not None:
        config['percentile'] = args.percentile
    if args.clamp_signal_delay is not None:
        config['clamp_signal_delay'] = args.clamp_signal_delay
    if args.log_level:
        config['logging']['level'] = args.log_level
    if args.log_file:
        config['logging']['file'] = args.log_file

    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except LinkTraceError as e:
        setup_logger("linktrace")
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logger("linktrace", level=config['logging']['level'], log_file=config['logging']['file'])

    if config['bin_width_ms'] is None:
        parser.error("--bin-width-ms is required (or set bin_width_ms in --config)")
    if config['time_begin_ms'] is None:
        parser.error("--time-begin-ms is required (or set time_begin_ms in --config)")

    try:
        validate_config(config)

        analyzer = TraceAnalyzer(
            bin_width_ms=config['bin_width_ms'],
            time_begin_ms=config['time_begin_ms'],
            percentile=config['percentile'],
            clamp_signal_delay=config['clamp_signal_delay'],
        )

        if args.trace:
            trace_path = Path(args.trace)
            if not trace_path.exists():
                logger.error(f"Trace file not found: {trace_path}")
                return 1
            logger.info(f"Analyzing trace: {trace_path}")
            with open(trace_path, encoding='utf-8') as f:
                report = analyzer.analyze(f)
        else:
            logger.info("Analyzing trace from standard input")
            report = analyzer.analyze(sys.stdin)

        write_outputs(report, args, config)
    except LinkTraceError as e:
        logger.error(f"Analysis failed: {e}")
        return 1
    except UnicodeDecodeError as e:
        logger.error(f"Analysis failed: trace is not valid UTF-8 text ({e.reason} at byte {e.start})")
        return 1
    except OSError as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    for line in report.summary_lines(include_signal_delay=args.signal_delay):
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
