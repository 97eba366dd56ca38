"""
trace_parser.py - Read and validate link trace event logs

A trace is a text log with one event per line:

    # base timestamp: 1500000000
    # anything else starting with '#' is a comment
    <timestamp> + <bytes>            packet arrival
    <timestamp> # <bytes>            capacity sample (delivery opportunity)
    <timestamp> - <bytes> <delay>    packet departure with queueing delay

Timestamps are milliseconds. Each is corrected by subtracting the base
timestamp, then events before time_begin_ms are dropped. Any malformed line
aborts parsing with TraceFormatError / TraceStructureError.
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

from .errors import TraceFormatError, TraceStructureError

logger = logging.getLogger(__name__)

BASE_TIMESTAMP_RE = re.compile(r'^# base timestamp: (\d+)')
UINT_RE = re.compile(r'^\d+$')


class EventKind(Enum):
    """Event classes and their trace tokens."""
    ARRIVAL = "+"
    DEPARTURE = "-"
    CAPACITY = "#"


@dataclass
class Event:
    """A validated trace event with its timestamp already corrected."""
    timestamp_ms: int
    kind: EventKind
    num_bytes: int
    delay_ms: Optional[float] = None

    @property
    def num_bits(self) -> int:
        return self.num_bytes * 8

    @property
    def origin_ms(self) -> Optional[int]:
        """Millisecond at which a departed packet entered the queue."""
        if self.delay_ms is None:
            return None
        return int(math.floor(self.timestamp_ms - self.delay_ms))


class TraceParser:
    """Single-pass validating parser over trace lines."""

    def __init__(self, time_begin_ms: int = 0):
        self.time_begin_ms = time_begin_ms
        self.base_timestamp: Optional[int] = None

        # Counters for the debug summary
        self.lines_read = 0
        self.comments_skipped = 0
        self.events_retained = 0
        self.events_discarded = 0

    def parse(self, lines: Iterable[str]) -> Iterator[Event]:
        """Yield retained events; raise on the first invalid line."""
        for line_no, raw_line in enumerate(lines, start=1):
            self.lines_read += 1
            line = raw_line.rstrip('\r\n')

            match = BASE_TIMESTAMP_RE.match(line)
            if match:
                if self.base_timestamp is not None:
                    raise TraceStructureError(
                        f"line {line_no}: base timestamp multiply defined")
                self.base_timestamp = int(match.group(1))
                logger.debug(f"Base timestamp: {self.base_timestamp}")
                continue

            if line.startswith('#'):
                self.comments_skipped += 1
                continue

            if self.base_timestamp is None:
                raise TraceStructureError(
                    f"line {line_no}: data before base timestamp was defined")

            event = self._parse_event(line, line_no)
            if event.timestamp_ms < self.time_begin_ms:
                self.events_discarded += 1
                continue

            self.events_retained += 1
            yield event

        if self.base_timestamp is None:
            raise TraceStructureError("missing base timestamp")

        logger.debug(
            f"Parsed {self.lines_read} lines: {self.events_retained} events retained, "
            f"{self.events_discarded} before time_begin, {self.comments_skipped} comments")

    def _parse_event(self, line: str, line_no: int) -> Event:
        fields = line.split()
        if len(fields) not in (3, 4):
            raise TraceFormatError(
                f"line {line_no}: expected 'timestamp [+-#] num_bytes [delay]', got {line!r}")

        timestamp_str, token, bytes_str = fields[:3]

        if not UINT_RE.match(timestamp_str):
            raise TraceFormatError(f"line {line_no}: invalid timestamp {timestamp_str!r}")
        if not UINT_RE.match(bytes_str):
            raise TraceFormatError(f"line {line_no}: invalid byte count {bytes_str!r}")

        try:
            kind = EventKind(token)
        except ValueError:
            raise TraceFormatError(f"line {line_no}: unknown event type {token!r}") from None

        timestamp_ms = int(timestamp_str) - self.base_timestamp
        num_bytes = int(bytes_str)

        if kind is not EventKind.DEPARTURE:
            return Event(timestamp_ms=timestamp_ms, kind=kind, num_bytes=num_bytes)

        if len(fields) < 4:
            raise TraceFormatError(
                f"line {line_no}: departure format is 'timestamp - num_bytes delay'")

        try:
            delay_ms = float(fields[3])
        except ValueError:
            raise TraceFormatError(f"line {line_no}: invalid delay {fields[3]!r}") from None

        if not math.isfinite(delay_ms) or delay_ms < 0:
            raise TraceFormatError(f"line {line_no}: delay must be non-negative, got {fields[3]}")
        if timestamp_ms - delay_ms < 0:
            raise TraceFormatError(
                f"line {line_no}: timestamp - delay < 0 ({timestamp_ms} - {delay_ms})")

        return Event(timestamp_ms=timestamp_ms, kind=kind, num_bytes=num_bytes, delay_ms=delay_ms)


def parse_trace(lines: Iterable[str], time_begin_ms: int = 0) -> Iterator[Event]:
    """Lazily parse trace lines into validated events."""
    return TraceParser(time_begin_ms=time_begin_ms).parse(lines)
