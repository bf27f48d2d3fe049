"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from auth.hasher import BCRYPT_MAX_BYTES, secret_too_long

from utils.timezone import from_timestamp


class Role(str, Enum):
    """User roles."""

    ADMIN = "ADMIN"
    USER = "USER"


class PublicUser(BaseModel):
    """User projection safe to return to clients. No secrets."""

    id: UUID
    email: EmailStr
    name: str
    role: Role
    email_verified: bool
    created_at: datetime
    updated_at: datetime


class User(BaseModel):
    """A registered user, as persisted.

    refresh_token holds the single currently valid refresh token (None means
    no active session). Each action token is a (hash, expires_at, issued_at)
    triple overwritten as a whole whenever a new one is issued.
    """

    id: UUID
    email: EmailStr
    name: str
    password_hash: str
    role: Role = Role.USER
    email_verified: bool = False
    refresh_token: str | None = None

    email_verification_token_hash: str | None = None
    email_verification_expires_at: datetime | None = None
    email_verification_issued_at: datetime | None = None

    password_reset_token_hash: str | None = None
    password_reset_expires_at: datetime | None = None
    password_reset_issued_at: datetime | None = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    def to_public(self) -> PublicUser:
        return PublicUser(
            id=self.id,
            email=self.email,
            name=self.name,
            role=self.role,
            email_verified=self.email_verified,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class AccessTokenPayload(BaseModel):
    """Claims carried by an access token."""

    user_id: UUID
    email: str
    name: str | None = None
    role: Role
    type: Literal["access"]
    iat: int
    exp: int

    @property
    def issued_at(self) -> datetime:
        return from_timestamp(self.iat)

    @property
    def expires_at(self) -> datetime:
        return from_timestamp(self.exp)


class RefreshTokenPayload(BaseModel):
    """Claims carried by a refresh token.

    token_id is random per token so two refresh tokens for the same user are
    never equal, even when issued within the same second.
    """

    user_id: UUID
    token_id: str = Field(..., min_length=32)
    type: Literal["refresh"]
    iat: int
    exp: int

    @property
    def issued_at(self) -> datetime:
        return from_timestamp(self.iat)

    @property
    def expires_at(self) -> datetime:
        return from_timestamp(self.exp)


class TokenPair(BaseModel):
    """Access + refresh token with lifetimes for cookie max-age / display."""

    access_token: str
    refresh_token: str
    access_token_expires_in_ms: int
    refresh_token_expires_in_ms: int


class LoginResult(BaseModel):
    """User info and tokens returned after successful login."""

    user: PublicUser
    tokens: TokenPair


class RegisterResult(BaseModel):
    """Result of registration. Registration never starts a session."""

    user: PublicUser
    verification_sent: bool


class AuthenticatedUser(BaseModel):
    """Identity carried by a verified access token."""

    user_id: UUID
    email: str
    name: str | None = None
    role: Role


# Request payloads

def _strip_email(value):
    return value.strip() if isinstance(value, str) else value


def _check_password_bytes(value: str) -> str:
    # max_length counts characters; bcrypt only sees the first 72 bytes
    if secret_too_long(value):
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded")
    return value


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: str = Field(..., min_length=2, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip_email(value)

    @field_validator("password")
    @classmethod
    def password_fits_hash(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip_email(value)


class EmailRequest(BaseModel):
    """Resend verification / forgot password."""

    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return _strip_email(value)


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_hash(cls, value: str) -> str:
        return _check_password_bytes(value)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_fits_hash(cls, value: str) -> str:
        return _check_password_bytes(value)
