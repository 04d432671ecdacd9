"""Clock state persistence."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .models import ClockState

logger = logging.getLogger(__name__)


class ClockStateStore:
    """Loads and overwrites the flat JSON record backing the clock."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ClockState:
        """Read the record, falling back to defaults on any problem."""

        if not self._path.exists():
            logger.info("No clock state at %s; starting unconfigured", self._path)
            return ClockState()
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logger.exception("Failed to read clock state from %s; using defaults", self._path)
            return ClockState()
        if not isinstance(data, dict):
            logger.warning("Clock state in %s is not an object; using defaults", self._path)
            return ClockState()
        state = ClockState.from_dict(data)
        logger.info(
            "Loaded clock state from %s (configured=%s, rate=%.2f)",
            self._path,
            state.is_configured,
            state.rate,
        )
        return state

    def save(self, state: ClockState) -> bool:
        """Overwrite the record; failures are logged and reported as False."""

        payload = json.dumps(state.to_dict())
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError:
            logger.exception("Failed to persist clock state to %s", self._path)
            return False
        logger.debug("Persisted clock state to %s", self._path)
        return True


__all__ = ["ClockStateStore"]
