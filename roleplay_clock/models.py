"""Core data models for the roleplay clock."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

UNCONFIGURED = "Horário não configurado."

# Upper bound for the rate; faster clocks make the time of day meaningless.
MAX_RATE = 100_000.0


def truncate_ms(value: datetime) -> datetime:
    """Drop sub-millisecond precision so persisted timestamps round-trip."""

    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def _dump_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds")


def _load_timestamp(value: Any, field_name: str) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, str):
        logger.warning("Ignoring non-string %s value %r", field_name, value)
        return None
    # ``fromisoformat`` only learned the ``Z`` suffix in 3.11
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Ignoring unparseable %s timestamp %r", field_name, value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return truncate_ms(parsed)


def is_valid_rate(value: Any) -> bool:
    """Return True when ``value`` is a number in ``(0, MAX_RATE]``."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and 0 < value <= MAX_RATE


@dataclass
class ClockState:
    """The single clock record: anchor pair, rate and last daily reset."""

    virtual_anchor: Optional[datetime] = None
    real_anchor: Optional[datetime] = None
    rate: float = 1.0
    last_reset_date: Optional[datetime] = None

    @property
    def is_configured(self) -> bool:
        return self.virtual_anchor is not None and self.real_anchor is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gameTime": _dump_timestamp(self.virtual_anchor),
            "realTime": _dump_timestamp(self.real_anchor),
            "rate": self.rate,
            "lastResetDate": _dump_timestamp(self.last_reset_date),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ClockState":
        virtual_anchor = _load_timestamp(data.get("gameTime"), "gameTime")
        real_anchor = _load_timestamp(data.get("realTime"), "realTime")
        if (virtual_anchor is None) != (real_anchor is None):
            logger.warning("Clock record holds only one anchor; treating it as unconfigured")
            virtual_anchor = real_anchor = None

        rate = data.get("rate", 1.0)
        if rate is None:
            rate = 1.0
        if not is_valid_rate(rate):
            logger.warning("Ignoring invalid rate %r; falling back to 1.0", rate)
            rate = 1.0

        return ClockState(
            virtual_anchor=virtual_anchor,
            real_anchor=real_anchor,
            rate=float(rate),
            last_reset_date=_load_timestamp(data.get("lastResetDate"), "lastResetDate"),
        )


__all__ = ["ClockState", "MAX_RATE", "UNCONFIGURED", "is_valid_rate", "truncate_ms"]
