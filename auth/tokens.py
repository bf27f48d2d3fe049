"""Signed bearer tokens (access + refresh) and plaintext action tokens.

Access and refresh tokens are HS256 JWTs signed with separate secrets so a
leak of one secret does not compromise the other token class. Time claims
are checked against the injected clock, which keeps expiry testable with a
simulated clock.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Callable
from uuid import UUID

import jwt
from pydantic import ValidationError

from auth.config import AuthConfig
from auth.exceptions import (
    InternalError,
    MalformedTokenError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from auth.types import AccessTokenPayload, RefreshTokenPayload, Role, TokenPair
from utils.timezone import now_utc, parse_duration

logger = logging.getLogger(__name__)

ACTION_TOKEN_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

# Largest multiple of the alphabet size that fits in a byte; bytes above it
# are discarded so every character is equally likely.
_UNBIASED_BYTE_LIMIT = 256 - (256 % len(ACTION_TOKEN_ALPHABET))

TOKEN_ID_BYTES = 16


def generate_action_token(
    length: int = 32,
    random_bytes: Callable[[int], bytes] = secrets.token_bytes,
) -> str:
    """Random alphanumeric token for email verification / password reset."""
    chars: list[str] = []
    while len(chars) < length:
        for byte in random_bytes(length * 2):
            if byte < _UNBIASED_BYTE_LIMIT:
                chars.append(ACTION_TOKEN_ALPHABET[byte % len(ACTION_TOKEN_ALPHABET)])
                if len(chars) == length:
                    break
    return "".join(chars)


class TokenCodec:
    """Signs and verifies access and refresh tokens."""

    def __init__(
        self,
        config: AuthConfig,
        clock: Callable[[], datetime] = now_utc,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
    ):
        self._config = config
        self._clock = clock
        self._random_bytes = random_bytes
        self._algorithm = config.jwt_algorithm
        # exp and the reported lifetime both derive from these whole seconds
        self._access_seconds = int(parse_duration(config.access_token_expires_in).total_seconds())
        self._refresh_seconds = int(parse_duration(config.refresh_token_expires_in).total_seconds())

    @property
    def access_token_expires_in_ms(self) -> int:
        return self._access_seconds * 1000

    @property
    def refresh_token_expires_in_ms(self) -> int:
        return self._refresh_seconds * 1000

    def _sign(self, claims: dict, secret: str, lifetime_seconds: int) -> str:
        issued_at = int(self._clock().timestamp())
        claims = {**claims, "iat": issued_at, "exp": issued_at + lifetime_seconds}
        try:
            return jwt.encode(claims, secret, algorithm=self._algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error(f"Token signing failed: {e}")
            raise InternalError("Failed to generate token") from e

    def _decode(self, token: str, secret: str) -> dict:
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self._algorithm],
                options={
                    "require": ["exp", "iat", "type"],
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                },
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise SignatureInvalidError("Invalid token signature") from e
        except jwt.PyJWTError as e:
            raise MalformedTokenError("Malformed token") from e

        if not isinstance(claims, dict):
            raise MalformedTokenError("Invalid token structure")

        now = self._clock().timestamp()

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            raise MalformedTokenError("Invalid token structure")
        if exp <= now:
            raise TokenExpiredError("Token expired")

        nbf = claims.get("nbf")
        if isinstance(nbf, (int, float)) and nbf > now:
            raise TokenNotYetValidError("Token not active yet")

        return claims

    def sign_access(
        self,
        user_id: UUID,
        email: str,
        role: Role,
        name: str | None = None,
    ) -> str:
        """Sign a short-lived access token."""
        claims = {
            "user_id": str(user_id),
            "email": email,
            "role": Role(role).value,
            "type": "access",
        }
        if name is not None:
            claims["name"] = name
        return self._sign(
            claims,
            self._config.access_token_secret,
            self._access_seconds,
        )

    def sign_refresh(self, user_id: UUID) -> str:
        """Sign a long-lived refresh token with a fresh random token_id."""
        claims = {
            "user_id": str(user_id),
            "token_id": self._random_bytes(TOKEN_ID_BYTES).hex(),
            "type": "refresh",
        }
        return self._sign(
            claims,
            self._config.refresh_token_secret,
            self._refresh_seconds,
        )

    def verify_access(self, token: str) -> AccessTokenPayload:
        """Verify an access token.

        Raises:
            MalformedTokenError, SignatureInvalidError, TokenExpiredError,
            TokenNotYetValidError (all InvalidTokenError).
        """
        claims = self._decode(token, self._config.access_token_secret)
        try:
            return AccessTokenPayload.model_validate(claims)
        except ValidationError as e:
            raise MalformedTokenError("Invalid access token payload") from e

    def verify_refresh(self, token: str) -> RefreshTokenPayload:
        """Verify a refresh token. Raises the same errors as verify_access."""
        claims = self._decode(token, self._config.refresh_token_secret)
        try:
            return RefreshTokenPayload.model_validate(claims)
        except ValidationError as e:
            raise MalformedTokenError("Invalid refresh token payload") from e

    def generate_token_pair(
        self,
        user_id: UUID,
        email: str,
        role: Role,
        name: str | None = None,
    ) -> TokenPair:
        """Sign both tokens. Durations derive from the configured lifetimes."""
        return TokenPair(
            access_token=self.sign_access(user_id, email, role, name),
            refresh_token=self.sign_refresh(user_id),
            access_token_expires_in_ms=self.access_token_expires_in_ms,
            refresh_token_expires_in_ms=self.refresh_token_expires_in_ms,
        )
