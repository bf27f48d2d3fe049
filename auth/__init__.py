"""Authentication token lifecycle: hashing, bearer tokens, sessions, action tokens."""

from auth.exceptions import (
    AuthError,
    UnauthorizedError,
    EmailNotVerifiedError,
    InvalidTokenError,
    MalformedTokenError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenNotYetValidError,
    InvalidVerificationTokenError,
    InvalidResetTokenError,
    EmailAlreadyVerifiedError,
    RateLimitedError,
    DuplicateEntryError,
    NotFoundError,
    InternalError,
)
from auth.types import (
    Role,
    User,
    PublicUser,
    AccessTokenPayload,
    RefreshTokenPayload,
    TokenPair,
    LoginResult,
    RegisterResult,
    AuthenticatedUser,
)
from auth.config import AuthConfig, load_auth_config
from auth.hasher import SecretHasher
from auth.tokens import TokenCodec, generate_action_token
from auth.rate_limiter import CooldownLimiter
from auth.database import UserRepository, AuthDatabase
from auth.memory import InMemoryUserRepository
from auth.email_dispatcher import EmailDispatcher
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import AuthService
from auth.factory import create_auth_service
