"""Presence updater driving the periodic clock tick."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .service import ClockService

logger = logging.getLogger(__name__)

_JOB_ID = "presence_tick"


class PresenceScheduler:
    """Runs the daily reset check and publishes the presence on an interval."""

    def __init__(
        self,
        service: ClockService,
        publisher: Optional[Callable[[str], None]] = None,
        *,
        interval_seconds: float = 10.0,
        clock: Optional[Callable[[], datetime]] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._service = service
        self._publisher = publisher
        self._interval = interval_seconds
        self._clock = clock or service.now
        self._scheduler = scheduler or BackgroundScheduler()
        self._started = False
        self.last_text: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._started

    def tick(self) -> str:
        now = self._clock()
        text = self._service.on_tick(now)
        self.last_text = text
        if self._publisher is None:
            logger.debug("Presence computed without publisher: %s", text)
            return text
        try:
            self._publisher(text)
        except Exception:
            logger.exception("Failed to publish presence %r", text)
        else:
            logger.debug("Presence updated: %s", text)
        return text

    def start(self) -> None:
        if self._started:
            return
        self.tick()
        self._scheduler.add_job(
            self.tick,
            "interval",
            seconds=self._interval,
            id=_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._started = True
        logger.info("Presence scheduler started (every %.1fs)", self._interval)

    def shutdown(self) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Presence scheduler stopped")


__all__ = ["PresenceScheduler", "BackgroundScheduler"]
