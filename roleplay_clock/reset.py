"""Daily reset rule forcing the roleplay clock to a fixed value each morning."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Tuple

from .models import ClockState, truncate_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyResetRule:
    """Once per local calendar day, inside a window starting at ``hour:minute``.

    ``window_minutes`` controls how long after the trigger time a tick may
    still fire the reset; ``1`` reproduces an exact-minute trigger.
    """

    hour: int = 5
    minute: int = 0
    window_minutes: int = 60
    reset_hour: int = 18
    reset_minute: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23 or not 0 <= self.minute <= 59:
            raise ValueError(f"Invalid reset trigger time {self.hour}:{self.minute:02d}")
        if not 0 <= self.reset_hour <= 23 or not 0 <= self.reset_minute <= 59:
            raise ValueError(f"Invalid reset target time {self.reset_hour}:{self.reset_minute:02d}")
        if self.window_minutes < 1:
            raise ValueError("Reset window must be at least one minute wide")

    def window(self, now: datetime) -> Tuple[datetime, datetime]:
        start = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        return start, start + timedelta(minutes=self.window_minutes)

    def is_due(self, state: ClockState, now: datetime) -> bool:
        start, end = self.window(now)
        if not start <= now < end:
            return False
        if state.last_reset_date is None:
            return True
        last = state.last_reset_date
        if now.tzinfo is not None:
            last = last.astimezone(now.tzinfo)
        return last.date() != now.date()

    def apply(self, state: ClockState, now: datetime) -> ClockState:
        now = truncate_ms(now)
        return replace(
            state,
            virtual_anchor=now.replace(
                hour=self.reset_hour, minute=self.reset_minute, second=0, microsecond=0
            ),
            real_anchor=now,
            last_reset_date=now,
        )

    def check(self, state: ClockState, now: datetime) -> Tuple[ClockState, bool]:
        if not self.is_due(state, now):
            return state, False
        logger.info(
            "Daily reset firing at %s; clock forced to %02d:%02d",
            now.isoformat(timespec="seconds"),
            self.reset_hour,
            self.reset_minute,
        )
        return self.apply(state, now), True


__all__ = ["DailyResetRule"]
