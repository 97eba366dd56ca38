"""
Pytest configuration and shared fixtures for linktrace tests.
"""

import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest

# Make the src/ layout importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def trace_lines(events: List[tuple], base: Optional[int] = 0) -> List[str]:
    """Build trace lines from (timestamp, token, bytes[, delay]) tuples."""
    lines = []
    if base is not None:
        lines.append(f"# base timestamp: {base}\n")
    for event in events:
        lines.append(" ".join(str(field) for field in event) + "\n")
    return lines


@pytest.fixture
def make_trace():
    return trace_lines


@pytest.fixture
def scenario_a_lines():
    """One capacity sample, one arrival and one departure on base 1000."""
    return trace_lines([
        (1000, '#', 1250),
        (1000, '+', 625),
        (1100, '-', 625, 50),
    ], base=1000)


@pytest.fixture
def busy_trace_lines():
    """Two seconds of a 12 Mbit/s link carrying a steady flow with variable delay."""
    np.random.seed(42)

    events = []
    for t in range(0, 2000):
        events.append((t, '#', 1500))
        if t % 2 == 0:
            events.append((t, '+', 1500))
        if t % 2 == 1 and t > 20:
            delay = int(np.random.randint(5, 20))
            events.append((t, '-', 1500, delay))
    return trace_lines(events, base=0)


@pytest.fixture
def trace_file(tmp_path, scenario_a_lines):
    path = tmp_path / "trace.log"
    path.write_text("".join(scenario_a_lines))
    return path
