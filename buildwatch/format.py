"""Human-readable formatting of durations, ages, statuses and long strings."""

from __future__ import annotations

from datetime import timedelta

SECS_PER_MINUTE = 60
SECS_PER_HOUR = 3600
SECS_PER_DAY = 86400

_STATUS_LABELS = {
    "in_progress": "in progress",
    "timed_out": "timed out",
    "startup_failure": "startup fail",
}

_ELLIPSIS = "…"


def duration(d: timedelta | float) -> str:
    """Format a duration (timedelta or seconds) as "Xs", "Xm" or "Xm Ys"."""
    total = d.total_seconds() if isinstance(d, timedelta) else d
    return seconds(int(total))


def seconds(secs: int) -> str:
    """Format whole seconds as "Xs", "Xm" or "Xm Ys"."""
    if secs < SECS_PER_MINUTE:
        return f"{secs}s"
    minutes, rest = divmod(secs, SECS_PER_MINUTE)
    return f"{minutes}m" if rest == 0 else f"{minutes}m {rest}s"


def age(secs: int) -> str:
    """Format seconds as a short "X ago" string."""
    if secs < SECS_PER_MINUTE:
        return "just now"
    if secs < SECS_PER_HOUR:
        return f"{secs // SECS_PER_MINUTE}m ago"
    if secs < SECS_PER_DAY:
        return f"{secs // SECS_PER_HOUR}h ago"
    return f"{secs // SECS_PER_DAY}d ago"


def status(s: str) -> str:
    """Turn a snake_case run status or conclusion into a readable label."""
    return _STATUS_LABELS.get(s, s)


def truncate(s: str, max_len: int) -> str:
    """Cut ``s`` to ``max_len`` characters, ending in an ellipsis when shortened."""
    keep = max(max_len, 1)
    if len(s) <= keep:
        return s
    return s[: keep - 1] + _ELLIPSIS