"""Cooldown enforcement for action token emails.

The last issuance time is stored on the user row alongside the token hash,
so the cooldown needs no extra state: a new verification or reset email is
refused until the configured window has passed since the previous one.
Cooldown tracks issuance only; token expiry does not shorten it.
"""

import math
from datetime import datetime, timedelta
from typing import Callable

from auth.config import AuthConfig
from auth.exceptions import RateLimitedError
from utils.timezone import now_utc


class CooldownLimiter:
    """Per-user cooldown between action token emails."""

    VERIFICATION = "verification email"
    PASSWORD_RESET = "password reset"

    def __init__(self, config: AuthConfig, clock: Callable[[], datetime] = now_utc):
        self._clock = clock
        self._windows = {
            self.VERIFICATION: timedelta(minutes=config.verification_email_cooldown_minutes),
            self.PASSWORD_RESET: timedelta(minutes=config.password_reset_cooldown_minutes),
        }

    def remaining(self, issued_at: datetime | None, operation: str) -> timedelta:
        """Time left before another email may be issued (zero if none)."""
        if issued_at is None:
            return timedelta(0)
        elapsed = self._clock() - issued_at
        return max(self._windows[operation] - elapsed, timedelta(0))

    def check_cooldown(self, issued_at: datetime | None, operation: str) -> None:
        """Raise if the cooldown for this operation has not elapsed.

        Raises:
            RateLimitedError: With the remaining wait in retry_after_seconds.
        """
        remaining = self.remaining(issued_at, operation)
        if remaining > timedelta(0):
            raise RateLimitedError(
                retry_after_seconds=max(math.ceil(remaining.total_seconds()), 1),
                operation=operation,
            )
