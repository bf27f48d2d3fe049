"""Security event logging for the auth audit trail.

Append-only log to the security_events table, mirrored to the module logger.
Events never carry passwords, plaintext action tokens or bearer tokens.
"""

import asyncio
import logging
from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Auth security event types."""

    USER_REGISTERED = "user_registered"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGIN_UNVERIFIED = "login_unverified"
    TOKEN_REFRESHED = "token_refreshed"
    REFRESH_TOKEN_REUSED = "refresh_token_reused"
    LOGOUT = "logout"
    EMAIL_VERIFIED = "email_verified"
    EMAIL_VERIFICATION_FAILED = "email_verification_failed"
    VERIFICATION_RESENT = "verification_resent"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET = "password_reset"
    PASSWORD_RESET_FAILED = "password_reset_failed"
    PASSWORD_CHANGED = "password_changed"
    RATE_LIMITED = "rate_limited"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    async def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record a security event."""
        logger.info(
            f"security event {event.value}",
            extra={"event": event.value, "email": email, "user_id": str(user_id) if user_id else None},
        )
        await asyncio.to_thread(
            self._db.execute_returning,
            """INSERT INTO security_events (event_type, email, user_id, details, created_at)
               VALUES (%s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                str(user_id) if user_id else None,
                Json(details) if details else None,
                now_utc(),
            ),
        )

    async def get_recent_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query recent security events with optional filters."""
        conditions = []
        params: list[Any] = []

        if email:
            conditions.append("email = %s")
            params.append(email)

        if user_id:
            conditions.append("user_id = %s")
            params.append(str(user_id))

        if event_type:
            conditions.append("event_type = %s")
            params.append(event_type.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.append(limit)

        return await asyncio.to_thread(
            self._db.execute,
            f"""SELECT id, event_type, email, user_id, details, created_at
                FROM security_events
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s""",
            tuple(params),
        )
