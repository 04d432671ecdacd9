"""Tests for the pure time projection functions."""
from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from roleplay_clock.models import MAX_RATE, UNCONFIGURED, ClockState
from roleplay_clock.projection import (
    InvalidRateError,
    InvalidTimeError,
    NonPositiveDeltaError,
    NotCalibratedError,
    format_time_of_day,
    parse_time_of_day,
    project,
    project_instant,
    recalibrate_by_rate,
    recalibrate_by_sample,
    set_rate,
)

BRT = timezone(timedelta(hours=-3))
T0 = datetime(2024, 5, 1, 9, 0, tzinfo=BRT)


def anchored(hour: int, minute: int, rate: float = 1.0, second: int = 0) -> ClockState:
    return ClockState(
        virtual_anchor=datetime(2024, 5, 1, hour, minute, second, tzinfo=BRT),
        real_anchor=T0,
        rate=rate,
    )


@pytest.mark.parametrize(
    "text, expected",
    [("12:35", (12, 35)), ("0:05", (0, 5)), (" 23:59 ", (23, 59)), ("07:00", (7, 0))],
)
def test_parse_time_of_day_accepts_valid_values(text, expected):
    assert parse_time_of_day(text) == expected


@pytest.mark.parametrize("text", ["", "12", "12:5", "24:00", "12:60", "ab:cd", "12:30:00", "-1:30", None])
def test_parse_time_of_day_rejects_malformed_values(text):
    with pytest.raises(InvalidTimeError):
        parse_time_of_day(text)


def test_invalid_time_error_is_a_value_error():
    assert issubclass(InvalidTimeError, ValueError)


def test_format_time_of_day_is_zero_padded_24h():
    assert format_time_of_day(datetime(2024, 5, 1, 7, 3, 9)) == "07:03:09"
    assert format_time_of_day(datetime(2024, 5, 1, 21, 0, 0)) == "21:00:00"


def test_project_returns_sentinel_when_unconfigured():
    assert project(ClockState(), T0) == UNCONFIGURED
    assert project_instant(ClockState(), T0) is None


@pytest.mark.parametrize("rate", [0.25, 1.0, 2.0, 120.0])
def test_project_at_real_anchor_returns_virtual_anchor(rate):
    state = anchored(12, 35, rate)
    assert project(state, T0) == "12:35:00"


@pytest.mark.parametrize("offset", [timedelta(0), timedelta(seconds=-1), timedelta(hours=-5)])
def test_project_never_runs_backwards(offset):
    state = anchored(12, 35, rate=3.0)
    assert project(state, T0 + offset) == "12:35:00"
    assert project_instant(state, T0 + offset) == state.virtual_anchor


def test_project_scales_elapsed_time_by_rate():
    state = anchored(12, 35, rate=2.0)
    assert project(state, T0 + timedelta(seconds=10)) == "12:35:20"


def test_project_wraps_past_midnight():
    state = anchored(23, 59, rate=60.0)
    assert project(state, T0 + timedelta(seconds=2)) == "00:01:00"


def test_recalibrate_by_rate_anchors_today_and_resets_rate():
    state = anchored(3, 0, rate=7.5)
    now = T0 + timedelta(minutes=20, microseconds=123456)
    updated = recalibrate_by_rate(state, 12, 35, now)

    assert updated.virtual_anchor == datetime(2024, 5, 1, 12, 35, tzinfo=BRT)
    assert updated.real_anchor == now.replace(microsecond=123000)
    assert updated.rate == 1.0
    # Input untouched
    assert state.rate == 7.5


def test_recalibrate_by_sample_computes_rate_from_two_observations():
    state = anchored(12, 0)
    updated = recalibrate_by_sample(state, 12, 10, T0 + timedelta(seconds=5))

    assert updated.rate == pytest.approx(120.0)
    assert updated.virtual_anchor == datetime(2024, 5, 1, 12, 10, tzinfo=BRT)
    assert updated.real_anchor == T0 + timedelta(seconds=5)


def test_recalibrate_by_sample_requires_calibration():
    with pytest.raises(NotCalibratedError):
        recalibrate_by_sample(ClockState(), 12, 10, T0)


@pytest.mark.parametrize(
    "hour, minute, real_offset",
    [
        (12, 10, timedelta(0)),  # no real time elapsed
        (12, 10, timedelta(seconds=-30)),  # real clock went backwards
        (12, 0, timedelta(seconds=30)),  # virtual clock did not move
        (11, 55, timedelta(seconds=30)),  # virtual clock went backwards
    ],
)
def test_recalibrate_by_sample_rejects_non_positive_deltas(hour, minute, real_offset):
    state = anchored(12, 0, rate=1.5)
    before = replace(state)

    with pytest.raises(NonPositiveDeltaError):
        recalibrate_by_sample(state, hour, minute, T0 + real_offset)

    assert state == before


@pytest.mark.parametrize(
    "old_rate, new_rate",
    [(1.0, 2.0), (2.0, 0.5), (120.0, 1.0), (0.1, 33.3), (3.7, 3.7)],
)
def test_set_rate_freezes_displayed_time(old_rate, new_rate):
    state = anchored(12, 0, rate=old_rate)
    now = T0 + timedelta(seconds=37, milliseconds=300)
    before = project(state, now)

    updated = set_rate(state, new_rate, now)

    assert updated.rate == new_rate
    assert updated.real_anchor == now
    assert project(updated, now) == before


def test_set_rate_applies_new_rate_afterwards():
    state = anchored(12, 0, rate=1.0)
    now = T0 + timedelta(seconds=60)
    updated = set_rate(state, 2.0, now)

    assert project(updated, now + timedelta(seconds=30)) == "12:02:00"


@pytest.mark.parametrize(
    "bad_rate", [0, -1, -0.5, math.nan, math.inf, "2", None, True, MAX_RATE + 1, 1e9]
)
def test_set_rate_rejects_invalid_rates(bad_rate):
    state = anchored(12, 0, rate=1.5)
    before = replace(state)

    with pytest.raises(InvalidRateError):
        set_rate(state, bad_rate, T0 + timedelta(seconds=5))

    assert state == before


def test_set_rate_requires_calibration():
    with pytest.raises(NotCalibratedError):
        set_rate(ClockState(), 2.0, T0)


def test_set_rate_accepts_the_maximum_rate():
    updated = set_rate(anchored(12, 0), MAX_RATE, T0)

    assert updated.rate == MAX_RATE


def test_project_at_maximum_rate_survives_decades_of_elapsed_time():
    state = anchored(12, 0, rate=MAX_RATE)
    fifty_years = timedelta(days=365 * 50)

    assert project(state, T0 + fifty_years) == "12:00:00"
    assert project(state, T0 + fifty_years + timedelta(seconds=1)) == "15:46:40"


def test_recalibrate_by_sample_rejects_rate_above_maximum():
    state = anchored(12, 0)
    before = replace(state)

    with pytest.raises(InvalidRateError):
        recalibrate_by_sample(state, 23, 0, T0 + timedelta(milliseconds=100))

    assert state == before


def test_elapsed_time_across_dst_change_counts_real_seconds():
    zone = ZoneInfo("America/New_York")
    state = ClockState(
        virtual_anchor=datetime(2024, 3, 10, 12, 0, tzinfo=zone),
        real_anchor=datetime(2024, 3, 10, 1, 30, tzinfo=zone),
        rate=1.0,
    )
    # 01:30 EST to 03:30 EDT is a single real hour.
    now = datetime(2024, 3, 10, 3, 30, tzinfo=zone)

    assert project(state, now) == "13:00:00"


def test_recalibrate_by_sample_across_dst_change_uses_real_seconds():
    zone = ZoneInfo("America/New_York")
    state = ClockState(
        virtual_anchor=datetime(2024, 3, 10, 12, 0, tzinfo=zone),
        real_anchor=datetime(2024, 3, 10, 1, 30, tzinfo=zone),
        rate=1.0,
    )

    updated = recalibrate_by_sample(state, 14, 0, datetime(2024, 3, 10, 3, 30, tzinfo=zone))

    assert updated.rate == pytest.approx(2.0)
