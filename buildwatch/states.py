"""Run status and conclusion values reported by GitHub Actions."""

from __future__ import annotations

from enum import StrEnum


class RunConclusion(StrEnum):
    """Conclusion of a finished workflow run; unrecognised values map to UNKNOWN."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    STARTUP_FAILURE = "startup_failure"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> RunConclusion | None:
        return cls.UNKNOWN if isinstance(value, str) else None

    def as_str(self) -> str:
        """Raw string used for styling lookups; empty for UNKNOWN."""
        return "" if self is RunConclusion.UNKNOWN else self.value


class RunStatus(StrEnum):
    """Status of a workflow run; unrecognised values map to UNKNOWN."""

    IN_PROGRESS = "in_progress"
    QUEUED = "queued"
    WAITING = "waiting"
    REQUESTED = "requested"
    PENDING = "pending"
    COMPLETED = "completed"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> RunStatus | None:
        return cls.UNKNOWN if isinstance(value, str) else None

    def as_str(self) -> str:
        """Raw string used for styling lookups; empty for UNKNOWN."""
        return "" if self is RunStatus.UNKNOWN else self.value