"""Unit tests for auth/bruteforce.py -- failed login tracking.

A fake clock drives the window so no test sleeps.
"""

import pytest

from auth.bruteforce import LoginAttemptTracker
from core.errors import RateLimitedError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return LoginAttemptTracker(max_attempts=5, window_seconds=600, clock=clock)


def test_resolve_identifier_prefers_email_then_username_then_ip():
    assert LoginAttemptTracker.resolve_identifier("Ana@Municipalidad.CL", "ana", "10.0.0.1") == "ana@municipalidad.cl"
    assert LoginAttemptTracker.resolve_identifier(None, "Ana", "10.0.0.1") == "ana"
    assert LoginAttemptTracker.resolve_identifier(None, None, "10.0.0.1") == "10.0.0.1"
    assert LoginAttemptTracker.resolve_identifier(None, None, None) == "unknown"


def test_four_failures_do_not_block(tracker):
    for _ in range(4):
        tracker.register_failure("a@municipalidad.cl")
    tracker.check("a@municipalidad.cl")
    assert tracker.attempts("a@municipalidad.cl") == 4


def test_fifth_failure_blocks(tracker):
    for _ in range(5):
        tracker.register_failure("a@municipalidad.cl")
    with pytest.raises(RateLimitedError):
        tracker.check("a@municipalidad.cl")


def test_block_is_per_identifier(tracker):
    for _ in range(5):
        tracker.register_failure("a@municipalidad.cl")
    tracker.check("b@municipalidad.cl")


def test_block_expires_after_window(tracker, clock):
    for _ in range(5):
        tracker.register_failure("a@municipalidad.cl")
    clock.advance(601)
    tracker.check("a@municipalidad.cl")
    assert tracker.attempts("a@municipalidad.cl") == 0


def test_old_failures_do_not_accumulate(tracker, clock):
    for _ in range(4):
        tracker.register_failure("a@municipalidad.cl")
    clock.advance(601)
    tracker.check("a@municipalidad.cl")
    tracker.register_failure("a@municipalidad.cl")
    tracker.check("a@municipalidad.cl")
    assert tracker.attempts("a@municipalidad.cl") == 1


def test_clear_resets_completely(tracker):
    for _ in range(4):
        tracker.register_failure("a@municipalidad.cl")
    tracker.clear("a@municipalidad.cl")
    assert tracker.attempts("a@municipalidad.cl") == 0
    for _ in range(4):
        tracker.register_failure("a@municipalidad.cl")
    tracker.check("a@municipalidad.cl")


def test_one_off_identifiers_are_swept(tracker, clock):
    for n in range(50):
        tracker.register_failure(f"bot{n}@example.com")
    clock.advance(300)
    for _ in range(5):
        tracker.register_failure("reciente@municipalidad.cl")
    assert len(tracker) == 51

    clock.advance(301)
    tracker.register_failure("nuevo@municipalidad.cl")

    assert len(tracker) == 2
    assert tracker.attempts("bot0@example.com") == 0
    with pytest.raises(RateLimitedError):
        tracker.check("reciente@municipalidad.cl")
