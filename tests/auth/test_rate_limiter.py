"""Tests for CooldownLimiter - verification and reset email throttling."""

from datetime import timedelta

import pytest

from auth.exceptions import RateLimitedError
from auth.rate_limiter import CooldownLimiter


@pytest.fixture
def limiter(config, clock):
    """Limiter with the 2 minute test cooldowns."""
    return CooldownLimiter(config, clock=clock)


class TestRemaining:

    def test_never_issued(self, limiter):
        assert limiter.remaining(None, CooldownLimiter.VERIFICATION) == timedelta(0)

    def test_just_issued(self, limiter, clock):
        assert limiter.remaining(clock.now, CooldownLimiter.VERIFICATION) == timedelta(minutes=2)

    def test_counts_down(self, limiter, clock):
        issued_at = clock.now
        clock.advance(seconds=45)
        assert limiter.remaining(issued_at, CooldownLimiter.PASSWORD_RESET) == timedelta(seconds=75)

    def test_never_negative(self, limiter, clock):
        issued_at = clock.now
        clock.advance(hours=1)
        assert limiter.remaining(issued_at, CooldownLimiter.PASSWORD_RESET) == timedelta(0)


class TestCheckCooldown:

    def test_first_issue_passes(self, limiter):
        """No previous email, nothing to wait for."""
        limiter.check_cooldown(None, CooldownLimiter.VERIFICATION)

    def test_within_window_raises(self, limiter, clock):
        issued_at = clock.now
        clock.advance(seconds=30)

        with pytest.raises(RateLimitedError) as exc_info:
            limiter.check_cooldown(issued_at, CooldownLimiter.VERIFICATION)

        assert exc_info.value.retry_after_seconds == 90
        assert exc_info.value.operation == CooldownLimiter.VERIFICATION

    def test_partial_second_rounds_up(self, limiter, clock):
        issued_at = clock.now
        clock.advance(minutes=1, seconds=59, milliseconds=500)

        with pytest.raises(RateLimitedError) as exc_info:
            limiter.check_cooldown(issued_at, CooldownLimiter.PASSWORD_RESET)

        assert exc_info.value.retry_after_seconds == 1

    def test_window_elapsed_passes(self, limiter, clock):
        issued_at = clock.now
        clock.advance(minutes=2)
        limiter.check_cooldown(issued_at, CooldownLimiter.PASSWORD_RESET)

    def test_operations_use_own_windows(self, config, clock):
        config = config.model_copy(update={"password_reset_cooldown_minutes": 10})
        limiter = CooldownLimiter(config, clock=clock)
        issued_at = clock.now
        clock.advance(minutes=3)

        limiter.check_cooldown(issued_at, CooldownLimiter.VERIFICATION)
        with pytest.raises(RateLimitedError):
            limiter.check_cooldown(issued_at, CooldownLimiter.PASSWORD_RESET)
