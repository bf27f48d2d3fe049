"""Shared test fixtures for the auth test suite."""

from datetime import timedelta
from pathlib import Path
from unittest.mock import Mock
from urllib.parse import parse_qs, urlparse

import pytest
from dotenv import load_dotenv

# Load .env (if present) BEFORE any imports that might read env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from clients.vault_client import reset_vault_cache

reset_vault_cache()

from auth.config import AuthConfig
from auth.email_dispatcher import EmailDispatcher
from auth.hasher import SecretHasher
from auth.memory import InMemoryUserRepository
from auth.rate_limiter import CooldownLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.tokens import TokenCodec
from utils.timezone import now_utc


# =============================================================================
# TEST CONSTANTS
# =============================================================================

ACCESS_SECRET = "test-access-secret-0123456789abcdef0123456789"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012345678"

TEST_EMAIL = "alice@example.com"
TEST_PASSWORD = "CorrectHorse1!"
TEST_NAME = "Alice"


class FakeClock:
    """Controllable clock. Call it for the current time, advance() to move."""

    def __init__(self, start=None):
        self.now = start or now_utc()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def token_from_url(url: str) -> str:
    """Pull the plaintext token out of a verify/reset link."""
    return parse_qs(urlparse(url).query)["token"][0]


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Test config with the cheapest bcrypt cost."""
    return AuthConfig(
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        access_token_expires_in="15m",
        refresh_token_expires_in="7d",
        email_verification_expiry_minutes=60,
        password_reset_expiry_minutes=30,
        verification_email_cooldown_minutes=2,
        password_reset_cooldown_minutes=2,
        password_hash_rounds=4,
        frontend_url="https://app.example.com",
    )


@pytest.fixture
def hasher(config):
    hasher = SecretHasher(rounds=config.password_hash_rounds)
    yield hasher
    hasher.close()


@pytest.fixture
def codec(config, clock):
    return TokenCodec(config, clock=clock)


@pytest.fixture
def users(clock):
    return InMemoryUserRepository(clock=clock)


@pytest.fixture
def mock_email():
    """Mock dispatcher - no emails leave the test process."""
    return Mock(spec=EmailDispatcher)


@pytest.fixture
def mock_security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def auth_service(config, users, hasher, codec, clock, mock_email, mock_security_logger):
    """AuthService over the in-memory repository with mocked side channels."""
    return AuthService(
        config=config,
        users=users,
        hasher=hasher,
        codec=codec,
        cooldown=CooldownLimiter(config, clock=clock),
        email_dispatcher=mock_email,
        security_logger=mock_security_logger,
        clock=clock,
    )
