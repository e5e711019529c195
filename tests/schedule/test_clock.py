from __future__ import annotations

import pytest

from hubbank.schedule.clock import (
    format_clock,
    format_duration,
    forward_distance,
    in_wraparound_window,
    minutes_of,
    parse_clock,
    shift,
    signed_delta,
    slot_label,
)


@pytest.mark.parametrize(
    "token, expected",
    [
        ("08:00", 480),
        ("8:05", 485),
        ("23:59", 1439),
        ("00:00", 0),
        ("14:30:00", 870),
        (" 07:15 ", 435),
    ],
)
def test_parse_clock_accepts_well_formed_times(token, expected):
    assert parse_clock(token) == expected


@pytest.mark.parametrize("token", ["0800", "24:00", "12:60", "ab:cd", "", None, 480, "1:2:3:4"])
def test_parse_clock_treats_malformed_values_as_absent(token):
    assert parse_clock(token) is None


def test_minutes_of_falls_back_to_slot_top_of_hour():
    assert minutes_of(9, "09:40") == 580
    assert minutes_of(9, "bad") == 540
    assert minutes_of(9) == 540
    assert minutes_of(9, 1500) == 60


def test_wraparound_window_crosses_midnight():
    start = parse_clock("23:30")
    assert in_wraparound_window(parse_clock("00:45"), start, 90)
    assert in_wraparound_window(parse_clock("01:00"), start, 90)
    assert not in_wraparound_window(parse_clock("01:01"), start, 90)
    assert not in_wraparound_window(parse_clock("23:29"), start, 90)


def test_wraparound_window_edges_are_inclusive():
    assert in_wraparound_window(600, 600, 30)
    assert in_wraparound_window(630, 600, 30)
    assert not in_wraparound_window(631, 600, 30)


def test_wraparound_window_matches_forward_distance():
    for start in range(0, 1440, 97):
        for duration in (0, 45, 360, 1000):
            for value in range(0, 1440, 53):
                expected = forward_distance(start, value) <= duration
                assert in_wraparound_window(value, start, duration) is expected


def test_signed_delta_takes_shortest_direction():
    assert signed_delta(600, 645) == 45
    assert signed_delta(600, 570) == -30
    assert signed_delta(1430, 10) == 20
    assert signed_delta(10, 1430) == -20
    assert signed_delta(0, 720) == 720


def test_shift_and_formatting_wrap_around_the_day():
    assert shift(1430, 20) == 10
    assert shift(10, -30) == 1420
    assert format_clock(1445) == "00:05"
    assert format_clock(-15) == "23:45"
    assert slot_label(7) == "07:00"
    assert format_duration(95) == "1h 35m"
