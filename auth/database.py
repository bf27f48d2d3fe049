"""Persistence for users, sessions and action tokens.

The users table carries the single current refresh token and the two action
token triples (verification, password reset). Every mutation is a single-row
UPDATE that overwrites whole fields; refresh token rotation is a conditional
update so two concurrent refreshes cannot both succeed.
"""

import asyncio
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

import psycopg2.errors

from auth.exceptions import DuplicateEntryError, NotFoundError
from auth.types import User
from clients.postgres_client import PostgresClient

# Columns callers may write. id, created_at and updated_at are managed here.
WRITABLE_COLUMNS = frozenset({
    "email",
    "name",
    "password_hash",
    "role",
    "email_verified",
    "refresh_token",
    "email_verification_token_hash",
    "email_verification_expires_at",
    "email_verification_issued_at",
    "password_reset_token_hash",
    "password_reset_expires_at",
    "password_reset_issued_at",
})

_USER_COLUMNS = """id, email, name, password_hash, role, email_verified, refresh_token,
       email_verification_token_hash, email_verification_expires_at, email_verification_issued_at,
       password_reset_token_hash, password_reset_expires_at, password_reset_issued_at,
       created_at, updated_at"""


class UserRepository(Protocol):
    """What the auth core needs from persistence."""

    async def find_by_email(self, email: str) -> User | None: ...

    async def find_by_id(self, user_id: UUID) -> User | None: ...

    async def find_many_with_pending_verification(self, now: datetime) -> list[User]: ...

    async def find_many_with_pending_reset(self, now: datetime) -> list[User]: ...

    async def create(self, fields: dict[str, Any]) -> User: ...

    async def update(self, user_id: UUID, fields: dict[str, Any]) -> User: ...

    async def rotate_refresh_token(self, user_id: UUID, expected: str, new: str) -> bool: ...


def check_columns(fields: dict[str, Any]) -> None:
    """Reject writes to unknown or managed columns."""
    unknown = set(fields) - WRITABLE_COLUMNS
    if unknown:
        raise ValueError(f"Unknown user columns: {', '.join(sorted(unknown))}")


def _column_value(value: Any) -> Any:
    # Role and other str enums go to the database as their value
    return getattr(value, "value", value)


class AuthDatabase:
    """Postgres-backed UserRepository."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    @staticmethod
    def _to_user(row: dict | None) -> User | None:
        if row is None:
            return None
        return User.model_validate(row)

    async def find_by_email(self, email: str) -> User | None:
        """Find user by email (exact match against the stored value)."""
        row = await asyncio.to_thread(
            self._db.execute_single,
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s",
            (email,),
        )
        return self._to_user(row)

    async def find_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = await asyncio.to_thread(
            self._db.execute_single,
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return self._to_user(row)

    async def find_many_with_pending_verification(self, now: datetime) -> list[User]:
        """Unverified users holding a non-expired verification token."""
        rows = await asyncio.to_thread(
            self._db.execute,
            f"""SELECT {_USER_COLUMNS} FROM users
                WHERE email_verification_token_hash IS NOT NULL
                  AND email_verification_expires_at >= %s
                  AND email_verified = false""",
            (now,),
        )
        return [User.model_validate(row) for row in rows]

    async def find_many_with_pending_reset(self, now: datetime) -> list[User]:
        """Users holding a non-expired password reset token."""
        rows = await asyncio.to_thread(
            self._db.execute,
            f"""SELECT {_USER_COLUMNS} FROM users
                WHERE password_reset_token_hash IS NOT NULL
                  AND password_reset_expires_at >= %s""",
            (now,),
        )
        return [User.model_validate(row) for row in rows]

    async def create(self, fields: dict[str, Any]) -> User:
        """Insert a user.

        Raises:
            DuplicateEntryError: If the email is already registered.
        """
        check_columns(fields)
        columns = list(fields)
        placeholders = ", ".join(["%s"] * len(columns))
        try:
            rows = await asyncio.to_thread(
                self._db.execute_returning,
                f"""INSERT INTO users ({", ".join(columns)})
                    VALUES ({placeholders})
                    RETURNING {_USER_COLUMNS}""",
                tuple(_column_value(fields[c]) for c in columns),
            )
        except psycopg2.errors.UniqueViolation as e:
            raise DuplicateEntryError("Email is already registered") from e
        return User.model_validate(rows[0])

    async def update(self, user_id: UUID, fields: dict[str, Any]) -> User:
        """Overwrite the given columns on one user row.

        Raises:
            NotFoundError: If no user has this id.
        """
        check_columns(fields)
        columns = list(fields)
        assignments = ", ".join(f"{c} = %s" for c in columns)
        rows = await asyncio.to_thread(
            self._db.execute_returning,
            f"""UPDATE users SET {assignments}, updated_at = now()
                WHERE id = %s
                RETURNING {_USER_COLUMNS}""",
            (*(_column_value(fields[c]) for c in columns), user_id),
        )
        if not rows:
            raise NotFoundError("User not found")
        return User.model_validate(rows[0])

    async def rotate_refresh_token(self, user_id: UUID, expected: str, new: str) -> bool:
        """Swap the stored refresh token only if it still equals `expected`.

        Returns:
            True if the row was updated, False if the token had already changed.
        """
        rows = await asyncio.to_thread(
            self._db.execute_returning,
            """UPDATE users SET refresh_token = %s, updated_at = now()
               WHERE id = %s AND refresh_token = %s
               RETURNING id""",
            (new, user_id, expected),
        )
        return len(rows) > 0
