"""Tests for trace parsing and validation."""

import pytest

from linktrace.errors import TraceFormatError, TraceStructureError
from linktrace.trace_parser import Event, EventKind, TraceParser, parse_trace


class TestEvent:
    """Test Event helpers."""

    def test_num_bits(self):
        event = Event(timestamp_ms=10, kind=EventKind.ARRIVAL, num_bytes=1500)
        assert event.num_bits == 12000

    def test_origin_of_departure(self):
        event = Event(timestamp_ms=100, kind=EventKind.DEPARTURE, num_bytes=1, delay_ms=30.6)
        assert event.origin_ms == 69

    def test_origin_undefined_without_delay(self):
        event = Event(timestamp_ms=100, kind=EventKind.CAPACITY, num_bytes=1)
        assert event.origin_ms is None


class TestTraceParser:
    """Test TraceParser on well-formed traces."""

    def test_scenario_a(self, scenario_a_lines):
        events = list(parse_trace(scenario_a_lines))

        assert [e.kind for e in events] == [
            EventKind.CAPACITY, EventKind.ARRIVAL, EventKind.DEPARTURE]
        assert [e.timestamp_ms for e in events] == [0, 0, 100]
        assert events[2].delay_ms == 50.0
        assert events[0].delay_ms is None

    def test_base_timestamp_correction(self, make_trace):
        events = list(parse_trace(make_trace([(5123, '+', 10)], base=5000)))
        assert events[0].timestamp_ms == 123

    def test_comments_skipped(self):
        lines = [
            "# mahimahi mm-link\n",
            "# base timestamp: 0\n",
            "# init timestamp: 12\n",
            "5 + 100\n",
        ]
        parser = TraceParser()
        events = list(parser.parse(lines))
        assert len(events) == 1
        assert parser.comments_skipped == 2
        assert parser.base_timestamp == 0

    def test_capacity_token_not_a_comment(self, make_trace):
        events = list(parse_trace(make_trace([(7, '#', 1500)])))
        assert events[0].kind is EventKind.CAPACITY

    def test_time_begin_filters_events(self, make_trace):
        lines = make_trace([(100, '+', 1), (150, '+', 2), (200, '+', 3)], base=100)
        parser = TraceParser(time_begin_ms=50)
        events = list(parser.parse(lines))

        assert [e.timestamp_ms for e in events] == [50, 100]
        assert parser.events_discarded == 1
        assert parser.events_retained == 2

    def test_fourth_field_ignored_on_arrival(self, make_trace):
        events = list(parse_trace(make_trace([(1, '+', 10, 99)])))
        assert events[0].delay_ms is None

    def test_fractional_delay(self, make_trace):
        events = list(parse_trace(make_trace([(10, '-', 10, 2.5)])))
        assert events[0].delay_ms == 2.5

    def test_delay_equal_to_timestamp_allowed(self, make_trace):
        events = list(parse_trace(make_trace([(60, '-', 10, 60)])))
        assert events[0].origin_ms == 0

    def test_parse_is_lazy(self, make_trace):
        lines = make_trace([(1, '+', 10), (2, 'x', 10)])
        events = parse_trace(lines)
        assert next(events).timestamp_ms == 1
        with pytest.raises(TraceFormatError):
            next(events)


class TestTraceParserErrors:
    """Test fatal validation errors."""

    def test_duplicate_base_timestamp(self):
        lines = ["# base timestamp: 0\n", "# base timestamp: 10\n"]
        with pytest.raises(TraceStructureError, match="multiply defined"):
            list(parse_trace(lines))

    def test_data_before_base_timestamp(self):
        lines = ["5 + 100\n", "# base timestamp: 0\n"]
        with pytest.raises(TraceStructureError, match="before base timestamp"):
            list(parse_trace(lines))

    def test_missing_base_timestamp(self):
        with pytest.raises(TraceStructureError, match="missing base timestamp"):
            list(parse_trace(["# just a comment\n"]))

    def test_empty_input_missing_base(self):
        with pytest.raises(TraceStructureError):
            list(parse_trace([]))

    @pytest.mark.parametrize("line", [
        "5 +\n",
        "5 - 100 10 extra\n",
        "\n",
    ])
    def test_bad_field_count(self, line):
        with pytest.raises(TraceFormatError, match="line 2"):
            list(parse_trace(["# base timestamp: 0\n", line]))

    @pytest.mark.parametrize("line", [
        "5.5 + 100\n",
        "-5 + 100\n",
        "abc + 100\n",
    ])
    def test_non_numeric_timestamp(self, line):
        with pytest.raises(TraceFormatError, match="timestamp"):
            list(parse_trace(["# base timestamp: 0\n", line]))

    def test_non_numeric_bytes(self, make_trace):
        with pytest.raises(TraceFormatError, match="byte count"):
            list(parse_trace(make_trace([(5, '+', '1e3')])))

    def test_unknown_event_type(self, make_trace):
        with pytest.raises(TraceFormatError, match="unknown event type"):
            list(parse_trace(make_trace([(5, 'x', 100)])))

    def test_departure_without_delay(self, make_trace):
        with pytest.raises(TraceFormatError, match="departure format"):
            list(parse_trace(make_trace([(5, '-', 100)])))

    def test_negative_delay(self, make_trace):
        with pytest.raises(TraceFormatError, match="non-negative"):
            list(parse_trace(make_trace([(5, '-', 100, -1)])))

    def test_non_numeric_delay(self, make_trace):
        with pytest.raises(TraceFormatError, match="invalid delay"):
            list(parse_trace(make_trace([(5, '-', 100, 'soon')])))

    def test_departure_before_trace_start(self, make_trace):
        """Scenario B: corrected ts 50 with delay 60."""
        with pytest.raises(TraceFormatError, match="timestamp - delay < 0"):
            list(parse_trace(make_trace([(1050, '-', 100, 60)], base=1000)))

    def test_filtered_lines_still_validated(self, make_trace):
        lines = make_trace([(5, '-', 100, 60)])
        with pytest.raises(TraceFormatError):
            list(parse_trace(lines, time_begin_ms=1000))
