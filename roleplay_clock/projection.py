"""Time projection: mapping real elapsed time onto the roleplay clock.

Every function here is pure. Callers pass ``now`` explicitly and receive a new
:class:`~roleplay_clock.models.ClockState`; the record handed in is never
modified, so a rejected calibration leaves the caller's state untouched.
"""
from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from .models import MAX_RATE, UNCONFIGURED, ClockState, is_valid_rate, truncate_ms

_TIME_OF_DAY = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")
_SECONDS_PER_DAY = 86400


class InvalidTimeError(ValueError):
    """Raised when a time-of-day string is not a valid ``HH:MM`` value."""


class InvalidRateError(ValueError):
    """Raised when a rate is not a number in ``(0, MAX_RATE]``."""


class NonPositiveDeltaError(ValueError):
    """Raised when a calibration sample does not move forward in both clocks."""


class NotCalibratedError(RuntimeError):
    """Raised when an operation needs an anchor pair that does not exist yet."""


def parse_time_of_day(text: str) -> Tuple[int, int]:
    match = _TIME_OF_DAY.match(text or "")
    if match is None:
        raise InvalidTimeError(f"Invalid time of day {text!r}; expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTimeError(f"Time of day {text!r} is out of range")
    return hour, minute


def format_time_of_day(value: datetime) -> str:
    return value.strftime("%H:%M:%S")


def _at_time_of_day(now: datetime, hour: int, minute: int) -> datetime:
    return now.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _real_elapsed(now: datetime, anchor: datetime) -> timedelta:
    # Aware datetimes sharing a ZoneInfo subtract as wall time; go through UTC.
    return now.astimezone(timezone.utc) - anchor.astimezone(timezone.utc)


def project_instant(state: ClockState, now: datetime) -> Optional[datetime]:
    """Return the absolute virtual instant for ``now`` or None when unconfigured.

    The clock never runs backwards relative to its anchor: any ``now`` at or
    before the real anchor yields the virtual anchor itself. When the virtual
    span no longer fits a ``datetime`` it is folded to whole days, which keeps
    the time of day the clock would show.
    """

    if not state.is_configured:
        return None
    elapsed = _real_elapsed(now, state.real_anchor)
    if elapsed.total_seconds() <= 0:
        return state.virtual_anchor
    try:
        return state.virtual_anchor + elapsed * state.rate
    except OverflowError:
        seconds = (elapsed.total_seconds() * state.rate) % _SECONDS_PER_DAY
        return state.virtual_anchor + timedelta(seconds=seconds)


def project(state: ClockState, now: datetime) -> str:
    instant = project_instant(state, now)
    if instant is None:
        return UNCONFIGURED
    return format_time_of_day(instant)


def recalibrate_by_rate(state: ClockState, hour: int, minute: int, now: datetime) -> ClockState:
    """Anchor the clock at today's ``hour:minute`` and reset the rate to 1."""

    now = truncate_ms(now)
    return replace(
        state,
        virtual_anchor=_at_time_of_day(now, hour, minute),
        real_anchor=now,
        rate=1.0,
    )


def recalibrate_by_sample(state: ClockState, hour: int, minute: int, now: datetime) -> ClockState:
    """Derive a new rate from a second (virtual, real) observation."""

    if not state.is_configured:
        raise NotCalibratedError("The clock has not been set yet")
    now = truncate_ms(now)
    new_virtual = _at_time_of_day(now, hour, minute)
    delta_real = _real_elapsed(now, state.real_anchor).total_seconds()
    delta_virtual = (new_virtual - state.virtual_anchor).total_seconds()
    if delta_real <= 0 or delta_virtual <= 0:
        raise NonPositiveDeltaError(
            f"Both clocks must advance (real {delta_real:+.3f}s, virtual {delta_virtual:+.3f}s)"
        )
    rate = delta_virtual / delta_real
    if not is_valid_rate(rate):
        raise InvalidRateError(f"Derived rate {rate:.2f} exceeds the maximum of {MAX_RATE:g}")
    return replace(
        state,
        virtual_anchor=new_virtual,
        real_anchor=now,
        rate=rate,
    )


def set_rate(state: ClockState, new_rate: float, now: datetime) -> ClockState:
    """Change the rate without a visible jump in the displayed time."""

    if not is_valid_rate(new_rate):
        raise InvalidRateError(f"Rate must be a number in (0, {MAX_RATE:g}], got {new_rate!r}")
    if not state.is_configured:
        raise NotCalibratedError("The clock has not been set yet")
    now = truncate_ms(now)
    frozen = project_instant(state, now)
    return replace(
        state,
        virtual_anchor=truncate_ms(frozen),
        real_anchor=now,
        rate=float(new_rate),
    )


__all__ = [
    "InvalidRateError",
    "InvalidTimeError",
    "NonPositiveDeltaError",
    "NotCalibratedError",
    "format_time_of_day",
    "parse_time_of_day",
    "project",
    "project_instant",
    "recalibrate_by_rate",
    "recalibrate_by_sample",
    "set_rate",
]
