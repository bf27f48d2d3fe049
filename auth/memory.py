"""In-memory UserRepository for tests and local development."""

import asyncio
from datetime import datetime
from typing import Any, Callable
from uuid import UUID, uuid4

from auth.database import check_columns
from auth.exceptions import DuplicateEntryError, NotFoundError
from auth.types import User
from utils.timezone import now_utc


class InMemoryUserRepository:
    """Dict-backed repository with the same semantics as AuthDatabase.

    Returned users are copies, so callers never mutate stored state
    directly. A lock makes each write (including the refresh token
    compare-and-swap) atomic across concurrent tasks.
    """

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self._clock = clock
        self._users: dict[UUID, User] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._users)

    async def find_by_email(self, email: str) -> User | None:
        for user in self._users.values():
            if user.email == email:
                return user.model_copy()
        return None

    async def find_by_id(self, user_id: UUID) -> User | None:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def find_many_with_pending_verification(self, now: datetime) -> list[User]:
        return [
            user.model_copy()
            for user in self._users.values()
            if user.email_verification_token_hash is not None
            and user.email_verification_expires_at is not None
            and user.email_verification_expires_at >= now
            and not user.email_verified
        ]

    async def find_many_with_pending_reset(self, now: datetime) -> list[User]:
        return [
            user.model_copy()
            for user in self._users.values()
            if user.password_reset_token_hash is not None
            and user.password_reset_expires_at is not None
            and user.password_reset_expires_at >= now
        ]

    async def create(self, fields: dict[str, Any]) -> User:
        check_columns(fields)
        async with self._lock:
            if any(u.email == fields.get("email") for u in self._users.values()):
                raise DuplicateEntryError("Email is already registered")
            now = self._clock()
            user = User(id=uuid4(), created_at=now, updated_at=now, **fields)
            self._users[user.id] = user
            return user.model_copy()

    async def update(self, user_id: UUID, fields: dict[str, Any]) -> User:
        check_columns(fields)
        async with self._lock:
            current = self._users.get(user_id)
            if current is None:
                raise NotFoundError("User not found")
            updated = current.model_copy(update={**fields, "updated_at": self._clock()})
            self._users[user_id] = updated
            return updated.model_copy()

    async def rotate_refresh_token(self, user_id: UUID, expected: str, new: str) -> bool:
        async with self._lock:
            current = self._users.get(user_id)
            if current is None or current.refresh_token != expected:
                return False
            self._users[user_id] = current.model_copy(
                update={"refresh_token": new, "updated_at": self._clock()}
            )
            return True
