from datetime import datetime, timedelta, timezone

import pytest

from visitorpass.services.countdown import (
    Countdown,
    CountdownState,
    UrgencyTier,
    evaluate,
    format_remaining,
    snapshot_for,
)
from visitorpass.services.expiry import compute_expiry, to_iso

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)
EXPIRES = compute_expiry(CREATED)


@pytest.mark.parametrize("seconds, tier", [
    (1800, UrgencyTier.SUCCESS),
    (600, UrgencyTier.SUCCESS),
    (599, UrgencyTier.WARNING),
    (300, UrgencyTier.WARNING),
    (299, UrgencyTier.DANGER),
    (1, UrgencyTier.DANGER),
    (0, UrgencyTier.DANGER),
])
def test_tier_boundaries(seconds, tier):
    assert snapshot_for(seconds).tier is tier


@pytest.mark.parametrize("seconds, display", [
    (1800, "30:00"),
    (600, "10:00"),
    (599, "09:59"),
    (61, "01:01"),
    (1, "00:01"),
    (0, "Expired"),
    (4500, "75:00"),
])
def test_display_string(seconds, display):
    assert format_remaining(seconds) == display


def test_pass_five_minutes_before_expiry():
    snap = evaluate(to_iso(EXPIRES), datetime(2024, 1, 1, 0, 25, tzinfo=timezone.utc))
    assert snap.display == "05:00"
    assert snap.remaining_seconds == 300
    assert snap.tier is UrgencyTier.WARNING
    assert not snap.expired


def test_pass_just_after_expiry():
    snap = evaluate(to_iso(EXPIRES), datetime(2024, 1, 1, 0, 30, 1, tzinfo=timezone.utc))
    assert snap.display == "Expired"
    assert snap.tier is UrgencyTier.DANGER
    assert snap.state is CountdownState.EXPIRED


def test_states_progress_in_order():
    countdown = Countdown(to_iso(EXPIRES))
    seen = []
    for second in range(0, 1805, 5):
        state = countdown.advance(CREATED + timedelta(seconds=second)).state
        if not seen or seen[-1] is not state:
            seen.append(state)
    assert seen == [CountdownState.ACTIVE, CountdownState.WARNING,
                    CountdownState.DANGER, CountdownState.EXPIRED]


def test_clock_stepping_back_does_not_revive_a_pass():
    countdown = Countdown(EXPIRES)
    assert countdown.advance(EXPIRES + timedelta(seconds=2)).expired
    later = countdown.advance(EXPIRES - timedelta(minutes=20))
    assert later.expired
    assert later.remaining_seconds == 0


def test_clock_stepping_back_keeps_remaining_non_increasing():
    countdown = Countdown(EXPIRES)
    first = countdown.advance(CREATED + timedelta(minutes=10))
    second = countdown.advance(CREATED + timedelta(minutes=5))
    assert second.remaining_seconds == first.remaining_seconds
    third = countdown.advance(CREATED + timedelta(minutes=11))
    assert third.remaining_seconds == 19 * 60


def test_resumed_countdown_needs_no_compensation():
    # a view that slept for 12 minutes picks up the correct value on its next tick
    countdown = Countdown(EXPIRES)
    countdown.advance(CREATED)
    assert countdown.advance(CREATED + timedelta(minutes=12)).display == "18:00"


def test_corrupted_expiry_is_expired():
    snap = evaluate("31/12/2099 10:00", CREATED)
    assert snap.expired
    assert snap.display == "Expired"
