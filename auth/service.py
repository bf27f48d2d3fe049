"""Authentication service - orchestrates the token lifecycle.

Sessions are bearer token pairs. The user row stores exactly one refresh
token; issuing a new one (login, refresh) invalidates the previous one, and
logout or a password change/reset clears it. Verification and reset links
carry single-use plaintext tokens whose bcrypt hashes are stored on the row.
"""

import asyncio
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable
from urllib.parse import urlencode
from uuid import UUID

from auth.config import AuthConfig
from auth.database import UserRepository
from auth.email_dispatcher import EmailDispatcher
from auth.exceptions import (
    DuplicateEntryError,
    EmailAlreadyVerifiedError,
    EmailNotVerifiedError,
    InvalidResetTokenError,
    InvalidTokenError,
    InvalidVerificationTokenError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
)
from auth.hasher import SecretHasher
from auth.rate_limiter import CooldownLimiter
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.tokens import TokenCodec, generate_action_token
from auth.types import (
    AuthenticatedUser,
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    LoginResult,
    PublicUser,
    RegisterRequest,
    RegisterResult,
    ResetPasswordRequest,
    Role,
    TokenPair,
    TokenRequest,
    User,
)
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


@dataclass
class ActionToken:
    """A freshly issued verification/reset token. Only hashed is persisted."""

    plaintext: str
    hashed: str
    expires_at: datetime
    issued_at: datetime


def normalize_email(email: str) -> str:
    """Trim surrounding whitespace. Case is kept; lookups match as stored."""
    return email.strip()


class AuthService:
    """Orchestrates registration, login and the token lifecycle.

    Handles:
    - Registration and email verification (with resend cooldown)
    - Login, refresh token rotation with reuse detection, logout
    - Forgot/reset password and password change
    - Access token authentication

    Emails are fire-and-forget: a failed send is logged and never fails the
    operation that triggered it.
    """

    def __init__(
        self,
        config: AuthConfig,
        users: UserRepository,
        hasher: SecretHasher,
        codec: TokenCodec,
        cooldown: CooldownLimiter,
        email_dispatcher: EmailDispatcher,
        security_logger: SecurityLogger,
        clock: Callable[[], datetime] = now_utc,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
    ):
        self._config = config
        self._users = users
        self._hasher = hasher
        self._codec = codec
        self._cooldown = cooldown
        self._email = email_dispatcher
        self._security_logger = security_logger
        self._clock = clock
        self._random_bytes = random_bytes
        self._pending_emails: set[asyncio.Task] = set()
        self._timing_hash: str | None = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _url(self, path: str, token: str | None = None) -> str:
        url = f"{self._config.frontend_url}/{path}"
        if token is not None:
            url = f"{url}?{urlencode({'token': token})}"
        return url

    async def _issue_action_token(self, expiry_minutes: int) -> ActionToken:
        """Generate a plaintext token and its hash, valid for expiry_minutes."""
        plaintext = generate_action_token(self._config.action_token_length, self._random_bytes)
        hashed = await self._hasher.hash(plaintext)
        now = self._clock()
        return ActionToken(
            plaintext=plaintext,
            hashed=hashed,
            expires_at=now + timedelta(minutes=expiry_minutes),
            issued_at=now,
        )

    async def _match_action_token(
        self,
        candidates: list[User],
        token: str,
        hash_field: str,
    ) -> User | None:
        """Find the candidate whose stored hash matches the plaintext token.

        Hashes are salted, so there is no direct lookup by value; the scan is
        bounded by the number of pending, unexpired tokens.
        """
        for user in candidates:
            stored = getattr(user, hash_field)
            if stored and await self._hasher.verify(token, stored):
                return user
        return None

    async def _burn_password_check(self, password: str) -> None:
        """Spend the same hashing time when the user does not exist."""
        if self._timing_hash is None:
            self._timing_hash = await self._hasher.hash(secrets.token_hex(16))
        await self._hasher.verify(password, self._timing_hash)

    def _dispatch_email(self, send: Awaitable[None], kind: str) -> None:
        """Schedule an email without waiting for it."""
        task = asyncio.ensure_future(self._send_safely(send, kind))
        self._pending_emails.add(task)
        task.add_done_callback(self._pending_emails.discard)

    async def _send_safely(self, send: Awaitable[None], kind: str) -> None:
        try:
            await send
        except Exception:
            logger.exception(f"Failed to send {kind} email")

    async def drain(self) -> None:
        """Wait for outstanding email sends (shutdown, tests)."""
        while self._pending_emails:
            await asyncio.gather(*list(self._pending_emails))

    def _send_verification_email(self, user: User, token: str) -> None:
        self._dispatch_email(
            self._email.send_verify_email(
                user.email,
                user_name=user.name,
                verify_url=self._url("verify-email", token),
                expires_in_minutes=self._config.email_verification_expiry_minutes,
            ),
            "verification",
        )

    async def _audit(self, event: SecurityEvent, **kwargs) -> None:
        """Record a security event. A failed write never fails the operation."""
        try:
            await self._security_logger.log(event, **kwargs)
        except Exception:
            logger.exception(f"Failed to record security event {event.value}")

    async def _check_cooldown(self, user: User, issued_at: datetime | None, operation: str) -> None:
        try:
            self._cooldown.check_cooldown(issued_at, operation)
        except RateLimitedError as e:
            await self._audit(
                SecurityEvent.RATE_LIMITED,
                email=user.email,
                user_id=user.id,
                details={"operation": operation, "retry_after_seconds": e.retry_after_seconds},
            )
            raise

    async def _store_tokens(self, user: User) -> TokenPair:
        tokens = self._codec.generate_token_pair(user.id, user.email, user.role, user.name)
        await self._users.update(user.id, {"refresh_token": tokens.refresh_token})
        return tokens

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    async def register(self, email: str, password: str, name: str) -> RegisterResult:
        """Create an unverified user and email a verification link.

        Does not start a session.

        Raises:
            DuplicateEntryError: If the email is already registered.
            pydantic.ValidationError: On malformed input.
        """
        request = RegisterRequest(email=email, password=password, name=name)
        email = normalize_email(request.email)

        if await self._users.find_by_email(email) is not None:
            raise DuplicateEntryError("Email is already registered")

        verification = await self._issue_action_token(
            self._config.email_verification_expiry_minutes
        )
        password_hash = await self._hasher.hash(request.password)

        user = await self._users.create({
            "email": email,
            "name": request.name,
            "password_hash": password_hash,
            "role": Role.USER,
            "email_verified": False,
            "email_verification_token_hash": verification.hashed,
            "email_verification_expires_at": verification.expires_at,
            "email_verification_issued_at": verification.issued_at,
        })

        self._send_verification_email(user, verification.plaintext)

        await self._audit(
            SecurityEvent.USER_REGISTERED,
            email=user.email,
            user_id=user.id,
        )

        return RegisterResult(user=user.to_public(), verification_sent=True)

    async def login(self, email: str, password: str) -> LoginResult:
        """Check credentials and start a session.

        Storing the new refresh token invalidates any previous session.

        Raises:
            UnauthorizedError: Unknown email or wrong password (same message).
            EmailNotVerifiedError: Credentials valid but email unverified.
        """
        request = LoginRequest(email=email, password=password)
        email = normalize_email(request.email)

        user = await self._users.find_by_email(email)
        if user is None:
            await self._burn_password_check(request.password)
            await self._audit(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                details={"reason": "user_not_found"},
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not await self._hasher.verify(request.password, user.password_hash):
            await self._audit(
                SecurityEvent.LOGIN_FAILED,
                email=user.email,
                user_id=user.id,
                details={"reason": "wrong_password"},
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not user.email_verified:
            await self._audit(
                SecurityEvent.LOGIN_UNVERIFIED,
                email=user.email,
                user_id=user.id,
            )
            raise EmailNotVerifiedError("Please verify your email before logging in")

        tokens = await self._store_tokens(user)

        await self._audit(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=user.email,
            user_id=user.id,
        )

        return LoginResult(user=user.to_public(), tokens=tokens)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange the current refresh token for a new pair (rotation).

        The presented token must equal the one stored for the user. The swap
        is a conditional update, so of two concurrent refreshes with the same
        token only one succeeds.

        Raises:
            InvalidTokenError: Token fails verification, is stale, or lost the
                rotation race.
            UnauthorizedError: Token's user no longer exists.
        """
        payload = self._codec.verify_refresh(refresh_token)

        user = await self._users.find_by_id(payload.user_id)
        if user is None:
            raise UnauthorizedError("User not found")

        stored = user.refresh_token
        if stored is None or not hmac.compare_digest(stored, refresh_token):
            await self._audit(
                SecurityEvent.REFRESH_TOKEN_REUSED,
                email=user.email,
                user_id=user.id,
                details={"token_id": payload.token_id},
            )
            raise InvalidTokenError("Invalid refresh token")

        tokens = self._codec.generate_token_pair(user.id, user.email, user.role, user.name)
        rotated = await self._users.rotate_refresh_token(
            user.id,
            expected=refresh_token,
            new=tokens.refresh_token,
        )
        if not rotated:
            await self._audit(
                SecurityEvent.REFRESH_TOKEN_REUSED,
                email=user.email,
                user_id=user.id,
                details={"token_id": payload.token_id, "reason": "concurrent_rotation"},
            )
            raise InvalidTokenError("Invalid refresh token")

        await self._audit(
            SecurityEvent.TOKEN_REFRESHED,
            email=user.email,
            user_id=user.id,
        )

        return tokens

    async def logout(self, user_id: UUID) -> None:
        """End the user's session. Safe to call repeatedly or for unknown ids."""
        user = await self._users.find_by_id(user_id)
        if user is None:
            return

        await self._users.update(user_id, {"refresh_token": None})

        await self._audit(
            SecurityEvent.LOGOUT,
            email=user.email,
            user_id=user_id,
        )

    async def authenticate(self, access_token: str) -> AuthenticatedUser:
        """Verify an access token and return the identity it carries.

        Raises:
            InvalidTokenError: Any verification failure (subclass says which).
        """
        payload = self._codec.verify_access(access_token)
        return AuthenticatedUser(
            user_id=payload.user_id,
            email=payload.email,
            name=payload.name,
            role=payload.role,
        )

    async def get_current_user(self, user_id: UUID) -> PublicUser:
        """Raises NotFoundError if the user no longer exists."""
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user.to_public()

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    async def verify_email(self, token: str) -> None:
        """Mark the matching user verified and consume the token.

        Raises:
            InvalidVerificationTokenError: No pending, unexpired token matches.
        """
        request = TokenRequest(token=token)
        candidates = await self._users.find_many_with_pending_verification(self._clock())
        user = await self._match_action_token(
            candidates, request.token, "email_verification_token_hash"
        )

        if user is None:
            await self._audit(
                SecurityEvent.EMAIL_VERIFICATION_FAILED,
                details={"candidates": len(candidates)},
            )
            raise InvalidVerificationTokenError("Invalid or expired verification token")

        await self._users.update(user.id, {
            "email_verified": True,
            "email_verification_token_hash": None,
            "email_verification_expires_at": None,
        })

        self._dispatch_email(
            self._email.send_welcome_email(
                user.email,
                user_name=user.name,
                login_url=self._url("login"),
            ),
            "welcome",
        )

        await self._audit(
            SecurityEvent.EMAIL_VERIFIED,
            email=user.email,
            user_id=user.id,
        )

    async def resend_verification(self, email: str) -> None:
        """Issue a fresh verification token and email it.

        Unknown emails are a silent no-op.

        Raises:
            EmailAlreadyVerifiedError: The address is already verified.
            RateLimitedError: Previous email was sent within the cooldown.
        """
        request = EmailRequest(email=email)
        user = await self._users.find_by_email(normalize_email(request.email))
        if user is None:
            return

        if user.email_verified:
            raise EmailAlreadyVerifiedError("Email is already verified")

        await self._check_cooldown(
            user, user.email_verification_issued_at, CooldownLimiter.VERIFICATION
        )

        verification = await self._issue_action_token(
            self._config.email_verification_expiry_minutes
        )
        await self._users.update(user.id, {
            "email_verification_token_hash": verification.hashed,
            "email_verification_expires_at": verification.expires_at,
            "email_verification_issued_at": verification.issued_at,
        })

        self._send_verification_email(user, verification.plaintext)

        await self._audit(
            SecurityEvent.VERIFICATION_RESENT,
            email=user.email,
            user_id=user.id,
        )

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    async def forgot_password(self, email: str) -> None:
        """Email a password reset link.

        Returns the same (nothing) whether or not the email is registered.

        Raises:
            RateLimitedError: Previous reset email was sent within the cooldown.
        """
        request = EmailRequest(email=email)
        user = await self._users.find_by_email(normalize_email(request.email))
        if user is None:
            return

        await self._check_cooldown(
            user, user.password_reset_issued_at, CooldownLimiter.PASSWORD_RESET
        )

        reset = await self._issue_action_token(self._config.password_reset_expiry_minutes)
        await self._users.update(user.id, {
            "password_reset_token_hash": reset.hashed,
            "password_reset_expires_at": reset.expires_at,
            "password_reset_issued_at": reset.issued_at,
        })

        self._dispatch_email(
            self._email.send_password_reset_email(
                user.email,
                user_name=user.name,
                reset_url=self._url("reset-password", reset.plaintext),
                expires_in_minutes=self._config.password_reset_expiry_minutes,
            ),
            "password reset",
        )

        await self._audit(
            SecurityEvent.PASSWORD_RESET_REQUESTED,
            email=user.email,
            user_id=user.id,
        )

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password from a reset token and end all sessions.

        Raises:
            InvalidResetTokenError: No pending, unexpired token matches.
        """
        request = ResetPasswordRequest(token=token, password=new_password)
        candidates = await self._users.find_many_with_pending_reset(self._clock())
        user = await self._match_action_token(
            candidates, request.token, "password_reset_token_hash"
        )

        if user is None:
            await self._audit(
                SecurityEvent.PASSWORD_RESET_FAILED,
                details={"candidates": len(candidates)},
            )
            raise InvalidResetTokenError("Invalid or expired reset token")

        password_hash = await self._hasher.hash(request.password)
        await self._users.update(user.id, {
            "password_hash": password_hash,
            "password_reset_token_hash": None,
            "password_reset_expires_at": None,
            "refresh_token": None,
        })

        self._send_password_changed_email(user)

        await self._audit(
            SecurityEvent.PASSWORD_RESET,
            email=user.email,
            user_id=user.id,
        )

    async def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        """Change password for a signed-in user and end their session.

        Raises:
            NotFoundError: User no longer exists.
            UnauthorizedError: current_password is wrong.
        """
        request = ChangePasswordRequest(
            current_password=current_password,
            new_password=new_password,
        )
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        if not await self._hasher.verify(request.current_password, user.password_hash):
            await self._audit(
                SecurityEvent.LOGIN_FAILED,
                email=user.email,
                user_id=user.id,
                details={"reason": "wrong_current_password"},
            )
            raise UnauthorizedError("Current password is incorrect")

        password_hash = await self._hasher.hash(request.new_password)
        await self._users.update(user.id, {
            "password_hash": password_hash,
            "refresh_token": None,
        })

        self._send_password_changed_email(user)

        await self._audit(
            SecurityEvent.PASSWORD_CHANGED,
            email=user.email,
            user_id=user.id,
        )

    def _send_password_changed_email(self, user: User) -> None:
        self._dispatch_email(
            self._email.send_password_changed_email(
                user.email,
                user_name=user.name,
                change_time=self._clock(),
            ),
            "password changed",
        )
