"""
plot_results.py - Render linktrace outputs

- plot_throughput: capacity / ingress / throughput over time (matplotlib)
- plot_delay: per-packet queueing delay and reconstructed signal delay
- pipe_to_gnuplot: feed a script from timeseries.gnuplot_script to gnuplot
"""

import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional, Union

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .aggregator import TraceAccumulator
from .delay_stats import DelayStatistics
from .errors import PlotError
from .signal_delay import SignalDelayProfile

logger = logging.getLogger(__name__)

COLORS = {
    'capacity': '#2ecc71',
    'ingress': '#3498db',
    'throughput': '#e74c3c',
    'buffer': '#9b59b6',
    'signal_delay': '#2c3e50',
}

DEFAULT_PLOT_CONFIG: Dict[str, Any] = {
    'title': None,
    'width_in': 12,
    'height_in': 5,
    'dpi': 150,
}


def _save(fig, output_path: Path, dpi: int):
    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fig.savefig(output_path, dpi=dpi, bbox_inches='tight')
    except (ValueError, OSError) as e:
        raise PlotError(f"Failed to save {output_path}: {e}") from e
    finally:
        plt.close(fig)
    logger.info(f"Saved: {output_path}")


def plot_throughput(
    frame: pd.DataFrame,
    stats: DelayStatistics,
    output_path: Union[str, Path],
    plot_config: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Plot the binned rate series.

    Capacity is drawn as a filled region, ingress and throughput as lines,
    buffer occupancy on a secondary axis. The file format follows the
    output extension (png, svg, pdf).
    """
    cfg = dict(DEFAULT_PLOT_CONFIG)
    cfg.update(plot_config or {})
    output_path = Path(output_path)

    time_s = frame['time_s'].values

    fig, ax = plt.subplots(figsize=(cfg['width_in'], cfg['height_in']))

    ax.fill_between(time_s, 0, frame['capacity_mbps'].values, step='post',
                    color=COLORS['capacity'], alpha=0.2, linewidth=0.5,
                    label=f'Capacity (mean {stats.average_capacity_mbps:.2f} Mbits/s)')
    ax.plot(time_s, frame['ingress_mbps'].values, drawstyle='steps-post',
            color=COLORS['ingress'], linewidth=2,
            label=f'Traffic ingress (mean {stats.average_ingress_mbps:.2f} Mbits/s)')
    ax.plot(time_s, frame['throughput_mbps'].values, drawstyle='steps-post',
            color=COLORS['throughput'], linewidth=2,
            label=f'Throughput (mean {stats.average_throughput_mbps:.2f} Mbits/s)')

    ax2 = ax.twinx()
    ax2.plot(time_s, frame['buffer_bits'].values / 1e3, drawstyle='steps-post',
             color=COLORS['buffer'], linewidth=1, linestyle=':', alpha=0.8,
             label='Buffer occupancy')
    ax2.set_ylabel('Buffer occupancy (kbits)', fontsize=11)

    ax.set_xlabel('Time (s)', fontsize=11)
    ax.set_ylabel('Throughput (Mbits/s)', fontsize=11)
    ax.set_ylim(bottom=0)
    if cfg['title']:
        ax.set_title(cfg['title'], fontsize=12)

    handles, labels = ax.get_legend_handles_labels()
    handles2, labels2 = ax2.get_legend_handles_labels()
    ax.legend(handles + handles2, labels + labels2, loc='upper center',
              bbox_to_anchor=(0.5, 1.15), ncol=4, fontsize=9)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    _save(fig, output_path, cfg['dpi'])
    return output_path


def plot_delay(
    acc: TraceAccumulator,
    profile: SignalDelayProfile,
    output_path: Union[str, Path],
    plot_config: Optional[Dict[str, Any]] = None,
) -> Path:
    """Scatter per-packet queueing delay against departure time, with signal delay overlaid."""
    cfg = dict(DEFAULT_PLOT_CONFIG)
    cfg.update(plot_config or {})
    output_path = Path(output_path)

    fig, ax = plt.subplots(figsize=(cfg['width_in'], cfg['height_in']))

    departure_s = np.asarray(acc.departure_times_ms, dtype=float) / 1000.0
    ax.scatter(departure_s, acc.delays_ms, s=2, color=COLORS['ingress'], alpha=0.5,
               label='Per-packet queueing delay')
    ax.plot(profile.times_ms() / 1000.0, profile.delays_ms,
            color=COLORS['signal_delay'], linewidth=1,
            label='Signal delay')

    ax.set_xlabel('Time (s)', fontsize=11)
    ax.set_ylabel('Delay (ms)', fontsize=11)
    if cfg['title']:
        ax.set_title(cfg['title'], fontsize=12)
    ax.legend(loc='upper left')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    _save(fig, output_path, cfg['dpi'])
    return output_path


def pipe_to_gnuplot(script: str, executable: str = 'gnuplot', timeout: float = 60.0) -> bytes:
    """
    Run gnuplot with the script on its stdin.

    Returns:
        Whatever gnuplot wrote to stdout (the image when 'set output' has no file)
    """
    try:
        result = subprocess.run(
            [executable],
            input=script.encode(),
            capture_output=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise PlotError(f"{executable} not found; install gnuplot or use --plot") from None
    except subprocess.TimeoutExpired:
        raise PlotError(f"{executable} did not finish within {timeout:.0f}s") from None

    if result.returncode != 0:
        stderr = result.stderr.decode(errors='replace').strip()
        raise PlotError(f"{executable} exited with status {result.returncode}: {stderr}")

    return result.stdout
