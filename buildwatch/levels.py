"""Notification levels, poll aggression and the current time."""

from __future__ import annotations

import logging
import time
from enum import StrEnum

log = logging.getLogger(__name__)

NOTIFICATION_EVENT_COUNT = 3


def unix_now() -> int:
    """Current Unix epoch in whole seconds."""
    return int(time.time())


class NotificationLevel(StrEnum):
    """Notification urgency. Parsing is case-insensitive; unknown values become NORMAL."""

    OFF = "off"
    LOW = "low"
    NORMAL = "normal"
    CRITICAL = "critical"

    @classmethod
    def _missing_(cls, value: object) -> NotificationLevel | None:
        if not isinstance(value, str):
            return None
        lowered = value.lower()
        for member in cls:
            if member.value == lowered:
                return member
        log.warning("config: unknown notification level %r, using 'normal'", value)
        return cls.NORMAL

    def next(self) -> NotificationLevel:
        """The following level, wrapping around."""
        members = list(NotificationLevel)
        return members[(members.index(self) + 1) % len(members)]

    def prev(self) -> NotificationLevel:
        """The preceding level, wrapping around."""
        members = list(NotificationLevel)
        return members[(members.index(self) - 1) % len(members)]


_TARGET_FRACTIONS = {"low": 0.10, "medium": 0.30, "high": 0.70}
_INTERVAL_MULTIPLIERS = {"low": 7.0, "medium": 2.0, "high": 1.0}


class PollAggression(StrEnum):
    """How much of the GitHub rate-limit budget the poller may spend."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def _missing_(cls, value: object) -> PollAggression | None:
        if not isinstance(value, str):
            return None
        lowered = value.lower()
        for member in cls:
            if member.value == lowered:
                return member
        log.warning("config: unknown poll_aggression %r, using 'medium'", value)
        return cls.MEDIUM

    def next(self) -> PollAggression:
        """The following level, wrapping around."""
        members = list(PollAggression)
        return members[(members.index(self) + 1) % len(members)]

    def prev(self) -> PollAggression:
        """The preceding level, wrapping around."""
        members = list(PollAggression)
        return members[(members.index(self) - 1) % len(members)]

    def target_fraction(self) -> float:
        """Fraction of the rate-limit budget targeted per window."""
        return _TARGET_FRACTIONS[self.value]

    def target_calls(self, limit: int) -> int:
        """API calls allowed per rate-limit window for the given limit."""
        return int(self.target_fraction() * limit)

    def interval_multiplier(self) -> float:
        """Multiplier applied to poll intervals in the free zone."""
        return _INTERVAL_MULTIPLIERS[self.value]