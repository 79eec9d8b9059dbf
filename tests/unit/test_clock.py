"""
Unit tests for the polled countdown clock and its formatters.
"""

import pytest

from src.assessment.clock import Clock, format_clock, format_duration, format_remaining


class TestClock:
    """Tests for Clock."""

    def test_negative_start_rejected(self, monotonic):
        with pytest.raises(ValueError):
            Clock(-1, time_source=monotonic)

    def test_unarmed_clock_has_no_pending_ticks(self, monotonic):
        clock = Clock(10, time_source=monotonic)
        monotonic.advance(5)

        assert clock.running is False
        assert clock.pending_ticks() == 0

    def test_pending_ticks_count_whole_seconds(self, monotonic):
        clock = Clock(10, time_source=monotonic)
        clock.arm()
        monotonic.advance(2.5)

        assert clock.pending_ticks() == 2

    def test_tick_consumes_one_pending_second(self, monotonic):
        clock = Clock(10, time_source=monotonic)
        clock.arm()
        monotonic.advance(2.5)

        assert clock.tick() == 9
        assert clock.pending_ticks() == 1

    def test_pending_ticks_capped_at_remaining(self, monotonic):
        clock = Clock(3, time_source=monotonic)
        clock.arm()
        monotonic.advance(100)

        assert clock.pending_ticks() == 3

    def test_tick_at_zero_is_a_no_op(self, monotonic):
        clock = Clock(1, time_source=monotonic)
        clock.arm()

        assert clock.tick() == 0
        assert clock.expired is True
        assert clock.tick() == 0
        assert clock.remaining == 0

    def test_disarm_stops_measuring(self, monotonic):
        clock = Clock(10, time_source=monotonic)
        clock.arm()
        clock.disarm()
        monotonic.advance(4)

        assert clock.running is False
        assert clock.pending_ticks() == 0
        assert clock.remaining == 10


class TestFormatters:
    """Tests for the time formatting helpers."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "00:00:00"), (59, "00:00:59"), (3725, "01:02:05"), (-4, "00:00:00")],
    )
    def test_format_clock(self, seconds, expected):
        assert format_clock(seconds) == expected

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (60, "1 minute"),
            (600, "10 minutes"),
            (3600, "1 hour"),
            (5400, "1 hour 30 minutes"),
            (7200, "2 hours"),
        ],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "Expired"),
            (9, "9s remaining"),
            (125, "2m 5s remaining"),
            (3700, "1h 1m remaining"),
        ],
    )
    def test_format_remaining(self, seconds, expected):
        assert format_remaining(seconds) == expected
