"""
Countdown/status engine for displayed visitor passes.

`evaluate` is a pure function of `(expires_at, now)`. `Countdown` wraps it
for a single displayed pass and keeps the sequence it emits monotonic:
remaining time never goes back up and EXPIRED is final.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from visitorpass.services.expiry import Instant, remaining_seconds

EXPIRED_LABEL = "Expired"

SUCCESS_THRESHOLD_SECONDS = 600
WARNING_THRESHOLD_SECONDS = 300


class UrgencyTier(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"


class CountdownState(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    DANGER = "danger"
    EXPIRED = "expired"


_STATE_ORDER = {
    CountdownState.ACTIVE: 0,
    CountdownState.WARNING: 1,
    CountdownState.DANGER: 2,
    CountdownState.EXPIRED: 3,
}


@dataclass(frozen=True)
class CountdownSnapshot:
    remaining_seconds: int
    display: str
    tier: UrgencyTier
    state: CountdownState

    @property
    def expired(self) -> bool:
        return self.state is CountdownState.EXPIRED


def format_remaining(seconds: int) -> str:
    if seconds <= 0:
        return EXPIRED_LABEL
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


def urgency_tier(seconds: int) -> UrgencyTier:
    if seconds >= SUCCESS_THRESHOLD_SECONDS:
        return UrgencyTier.SUCCESS
    if seconds >= WARNING_THRESHOLD_SECONDS:
        return UrgencyTier.WARNING
    return UrgencyTier.DANGER


def _state_for(seconds: int) -> CountdownState:
    if seconds <= 0:
        return CountdownState.EXPIRED
    tier = urgency_tier(seconds)
    if tier is UrgencyTier.SUCCESS:
        return CountdownState.ACTIVE
    if tier is UrgencyTier.WARNING:
        return CountdownState.WARNING
    return CountdownState.DANGER


def snapshot_for(seconds: int) -> CountdownSnapshot:
    seconds = max(0, int(seconds))
    return CountdownSnapshot(
        remaining_seconds=seconds,
        display=format_remaining(seconds),
        tier=urgency_tier(seconds),
        state=_state_for(seconds),
    )


def evaluate(expires_at: Instant, now: datetime) -> CountdownSnapshot:
    return snapshot_for(remaining_seconds(expires_at, now))


class Countdown:
    """Countdown for one displayed pass."""

    def __init__(self, expires_at: Instant):
        self.expires_at = expires_at
        self._last: Optional[CountdownSnapshot] = None

    @property
    def last(self) -> Optional[CountdownSnapshot]:
        return self._last

    def advance(self, now: datetime) -> CountdownSnapshot:
        current = evaluate(self.expires_at, now)
        previous = self._last
        if previous is not None and (
            current.remaining_seconds > previous.remaining_seconds
            or _STATE_ORDER[current.state] < _STATE_ORDER[previous.state]
        ):
            # wall clock stepped backwards; hold the previous reading
            current = previous
        self._last = current
        return current
