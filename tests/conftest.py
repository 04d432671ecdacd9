"""Shared fixtures for the roleplay clock tests."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from roleplay_clock.config import Settings
from roleplay_clock.telemetry import TelemetryCollector, set_telemetry

# Fixed offset keeps local-day arithmetic independent of the host zone.
BRT = timezone(timedelta(hours=-3))


@dataclass
class FakeClock:
    """Manually advanced clock handed to services and schedulers."""

    _time: datetime

    def now(self) -> datetime:
        return self._time

    def advance(self, **kwargs) -> datetime:
        self._time = self._time + timedelta(**kwargs)
        return self._time

    def set(self, value: datetime) -> None:
        self._time = value


@pytest.fixture(autouse=True)
def memory_telemetry():
    """Keep telemetry in memory so tests never create telemetry.db."""

    collector = TelemetryCollector(None)
    set_telemetry(collector)
    yield collector
    set_telemetry(None)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings.from_dict(
        {
            "clock": {"state_path": str(tmp_path / "tempo.json"), "tick_seconds": 5},
            "daily_reset": {"trigger": "05:00", "window_minutes": 60, "time": "18:00"},
            "telemetry": {"db_path": ""},
        }
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 9, 0, tzinfo=BRT))
