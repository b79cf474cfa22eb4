"""Poll interval calculation from the GitHub API rate-limit state."""

from __future__ import annotations

import math

from buildwatch.github import RateLimit
from buildwatch.levels import PollAggression

MIN_ACTIVE_SECS = 15
"""Fastest permitted polling interval when active runs exist."""

MIN_IDLE_SECS = 30
"""Fastest permitted polling interval when no active runs exist."""

WINDOW_SECS = 3600
"""Assumed length of the GitHub rate-limit window."""


def _fallback_intervals(aggression: PollAggression) -> tuple[int, int]:
    multiplier = aggression.interval_multiplier()
    active = int(MIN_ACTIVE_SECS * multiplier)
    idle = int(MIN_IDLE_SECS * multiplier)
    return max(active, MIN_ACTIVE_SECS), max(idle, MIN_IDLE_SECS)


def compute_intervals(
    rate_limit: RateLimit | None,
    api_calls_per_cycle: int,
    now: int,
    aggression: PollAggression,
    last_active_secs: int,
) -> tuple[int, int]:
    """Return ``(active_secs, idle_secs)`` poll intervals.

    Without rate-limit data a conservative fallback scaled by ``aggression`` is
    used. While this poller's own estimated usage is under half its target
    budget, it polls near the floor speed. Otherwise the remaining budget,
    reduced by projected usage from other clients of the same token, is spread
    across the seconds left until the window resets. The floors
    ``MIN_ACTIVE_SECS`` and ``MIN_IDLE_SECS`` always hold.
    """
    calls = max(api_calls_per_cycle, 1)

    if rate_limit is None:
        return _fallback_intervals(aggression)

    target_calls = max(aggression.target_calls(rate_limit.limit), 1)

    # Back-project our own calls since the window started.
    window_start = max(rate_limit.reset - WINDOW_SECS, 0)
    elapsed = max(now - window_start, 1)
    own_calls_so_far = (elapsed // last_active_secs) * calls if last_active_secs > 0 else 0

    if own_calls_so_far * 2 < target_calls:
        scale = max(math.isqrt(calls), 1)
        multiplier = aggression.interval_multiplier()
        active = int(MIN_ACTIVE_SECS * scale * multiplier)
        idle = int(MIN_IDLE_SECS * scale * multiplier)
        return max(active, MIN_ACTIVE_SECS), max(idle, MIN_IDLE_SECS)

    secs_to_reset = max(rate_limit.reset - now, 1)
    external_used = max(rate_limit.used - own_calls_so_far, 0)
    projected_external = int(external_used / elapsed * secs_to_reset)

    available_to_us = max(rate_limit.remaining - projected_external, 0)
    our_remaining_quota = max(target_calls - own_calls_so_far, 0)
    effective_budget = min(available_to_us, our_remaining_quota)

    if effective_budget:
        rate_limited_secs = (calls * secs_to_reset) // effective_budget
    else:
        rate_limited_secs = secs_to_reset

    return max(MIN_ACTIVE_SECS, rate_limited_secs), max(MIN_IDLE_SECS, rate_limited_secs)