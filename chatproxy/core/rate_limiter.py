"""
Multi-tier sliding-window admission for chat requests.

Per-user state is a list of admission timestamps (epoch milliseconds). Each
tier counts the timestamps that fall inside its window ending at `now`; a
cooldown between consecutive requests sits in front of the tiers. `decide`
only reads state, `record` is the single place that mutates it.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from chatproxy.core.config import DAY_MS, HOUR_MS, MINUTE_MS, QuotaLimits


@dataclass
class UserState:
    request_timestamps: List[int] = field(default_factory=list)
    last_request_at: Optional[int] = None
    total_requests: int = 0
    blocked: bool = False
    created_at: int = 0


@dataclass
class Decision:
    allowed: bool
    reason: Optional[str] = None
    retry_after: Optional[int] = None
    remaining: Optional[Dict[str, int]] = None


def _in_window(timestamps: List[int], now: int, window_ms: int) -> List[int]:
    cutoff = now - window_ms
    return [t for t in timestamps if t > cutoff]


def _hours_until_midnight(now: int) -> int:
    current = datetime.fromtimestamp(now / 1000)
    midnight = (current + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1, math.ceil((midnight - current).total_seconds() / 3600))


def prune(state: UserState, cutoff: int) -> None:
    """Drop timestamps at or before `cutoff`."""
    state.request_timestamps = [t for t in state.request_timestamps if t > cutoff]


def remaining(state: UserState, now: int, limits: QuotaLimits) -> Dict[str, int]:
    """Per-tier quota left at `now`, ignoring cooldown and blocking."""
    timestamps = state.request_timestamps
    return {
        "minute": max(0, limits.max_per_minute - len(_in_window(timestamps, now, MINUTE_MS))),
        "hour": max(0, limits.max_per_hour - len(_in_window(timestamps, now, HOUR_MS))),
        "day": max(0, limits.max_per_day - len(_in_window(timestamps, now, DAY_MS))),
    }


def decide(state: UserState, now: int, limits: QuotaLimits) -> Decision:
    """
    Evaluate the rules in priority order: block, cooldown, minute, hour, day.
    The first rule that denies wins.
    """
    if state.blocked:
        return Decision(allowed=False, reason="Account is temporarily blocked")

    if state.last_request_at is not None:
        elapsed = max(0.0, (now - state.last_request_at) / 1000)
        if elapsed < limits.cooldown_seconds:
            wait = math.ceil(limits.cooldown_seconds - elapsed)
            return Decision(
                allowed=False,
                reason=f"Wait {wait} s between messages",
                retry_after=wait,
            )

    per_minute = len(_in_window(state.request_timestamps, now, MINUTE_MS))
    in_hour = _in_window(state.request_timestamps, now, HOUR_MS)
    per_day = len(_in_window(state.request_timestamps, now, DAY_MS))

    if per_minute >= limits.max_per_minute:
        return Decision(
            allowed=False,
            reason=f"At most {limits.max_per_minute} messages per minute",
            retry_after=60,
        )

    if len(in_hour) >= limits.max_per_hour:
        oldest = min(in_hour)
        reset_minutes = math.ceil((oldest + HOUR_MS - now) / MINUTE_MS)
        return Decision(
            allowed=False,
            reason=f"Hourly limit of {limits.max_per_hour} messages reached. Resets in ~{reset_minutes} min.",
            retry_after=reset_minutes * 60,
        )

    if per_day >= limits.max_per_day:
        hours_left = _hours_until_midnight(now)
        return Decision(
            allowed=False,
            reason=f"Daily limit of {limits.max_per_day} messages reached. Resets in ~{hours_left} h.",
            retry_after=hours_left * 3600,
        )

    return Decision(
        allowed=True,
        remaining={
            "minute": limits.max_per_minute - per_minute,
            "hour": limits.max_per_hour - len(in_hour),
            "day": limits.max_per_day - per_day,
        },
    )


def record(state: UserState, now: int, retention_ms: int) -> None:
    """Charge one admitted request and drop entries past the retention window."""
    state.request_timestamps.append(now)
    state.last_request_at = now
    state.total_requests += 1
    prune(state, now - retention_ms)
