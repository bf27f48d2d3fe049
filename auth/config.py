"""Authentication configuration."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from utils.timezone import parse_duration


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Token lifetimes use compact duration strings ("15m", "7d") so the same
    value drives both the signed expiry and the durations reported to
    clients. Action token windows are in minutes.
    """

    # Bearer tokens
    access_token_secret: str = Field(
        ...,
        description="HMAC secret for access tokens",
        min_length=32,
    )
    access_token_expires_in: str = Field(
        default="15m",
        description="Access token lifetime",
    )
    refresh_token_secret: str = Field(
        ...,
        description="HMAC secret for refresh tokens (must differ from access secret)",
        min_length=32,
    )
    refresh_token_expires_in: str = Field(
        default="7d",
        description="Refresh token lifetime",
    )
    jwt_algorithm: Literal["HS256"] = Field(
        default="HS256",
        description="Signing algorithm, pinned on verification",
    )

    # Action tokens
    email_verification_expiry_minutes: int = Field(
        default=1440,  # 24 hours
        description="How long email verification links remain valid",
        ge=5,
        le=10080,
    )
    password_reset_expiry_minutes: int = Field(
        default=60,
        description="How long password reset links remain valid",
        ge=5,
        le=1440,
    )
    action_token_length: int = Field(
        default=32,
        description="Length of plaintext verification/reset tokens",
        ge=32,
        le=72,  # bcrypt input limit
    )

    # Cooldowns
    verification_email_cooldown_minutes: int = Field(
        default=5,
        description="Minimum wait between verification emails",
        ge=1,
        le=60,
    )
    password_reset_cooldown_minutes: int = Field(
        default=5,
        description="Minimum wait between password reset emails",
        ge=1,
        le=60,
    )

    # Hashing
    password_hash_rounds: int = Field(
        default=10,
        description="bcrypt cost factor",
        ge=4,
        le=15,
    )

    # Application
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL for verify/reset links",
    )
    app_name: str = Field(
        default="User Management",
        description="Application name for emails",
    )

    @field_validator("access_token_expires_in", "refresh_token_expires_in")
    @classmethod
    def _check_duration(cls, value: str) -> str:
        # JWT exp is whole seconds; the reported lifetime must match it exactly
        if parse_duration(value).total_seconds() % 1:
            raise ValueError(f"Token lifetime must be whole seconds: {value!r}")
        return value

    @field_validator("frontend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _check_separate_secrets(self) -> "AuthConfig":
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("access_token_secret and refresh_token_secret must differ")
        return self


def load_auth_config(**overrides) -> AuthConfig:
    """Build AuthConfig with JWT secrets pulled from Vault.

    Keyword overrides win over both Vault values and defaults.
    """
    from clients.vault_client import get_jwt_config

    values = dict(get_jwt_config())
    values.update(overrides)
    return AuthConfig(**values)
