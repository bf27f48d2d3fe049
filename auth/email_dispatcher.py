"""Auth emails: verification, welcome, password reset, password changed.

Messages are composed here as plain text and handed to the email gateway on
a worker thread. Callers in the auth flow treat every send as
fire-and-forget.
"""

import asyncio
import logging
from datetime import datetime

from clients.email_client import EmailGatewayClient

logger = logging.getLogger(__name__)


class EmailDispatcher:
    """Compose and send the account lifecycle emails."""

    def __init__(self, email_client: EmailGatewayClient, app_name: str = "User Management"):
        self._email_client = email_client
        self._app_name = app_name

    async def _send(self, to: str, subject: str, body: str) -> None:
        await asyncio.to_thread(self._email_client.send_email, to, subject, body, "auth")

    async def send_verify_email(
        self,
        to: str,
        user_name: str,
        verify_url: str,
        expires_in_minutes: int,
    ) -> None:
        """Email the verification link (carries the plaintext token)."""
        body = (
            f"Hi {user_name},\n\n"
            f"Please confirm your email address for {self._app_name}:\n\n"
            f"{verify_url}\n\n"
            f"This link expires in {expires_in_minutes} minutes. "
            "If you did not create an account, ignore this email."
        )
        await self._send(to, f"Verify your email address - {self._app_name}", body)

    async def send_welcome_email(self, to: str, user_name: str, login_url: str) -> None:
        body = (
            f"Hi {user_name},\n\n"
            f"Your email is verified and your {self._app_name} account is ready.\n\n"
            f"Sign in: {login_url}"
        )
        await self._send(to, f"Welcome to {self._app_name}", body)

    async def send_password_reset_email(
        self,
        to: str,
        user_name: str,
        reset_url: str,
        expires_in_minutes: int,
    ) -> None:
        """Email the password reset link (carries the plaintext token)."""
        body = (
            f"Hi {user_name},\n\n"
            "We received a request to reset your password. Choose a new one here:\n\n"
            f"{reset_url}\n\n"
            f"This link expires in {expires_in_minutes} minutes. "
            "If you did not ask for a reset, you can ignore this email."
        )
        await self._send(to, f"Reset your password - {self._app_name}", body)

    async def send_password_changed_email(
        self,
        to: str,
        user_name: str,
        change_time: datetime,
    ) -> None:
        body = (
            f"Hi {user_name},\n\n"
            f"Your {self._app_name} password was changed on "
            f"{change_time.strftime('%Y-%m-%d %H:%M:%S %Z')}.\n\n"
            "All existing sessions have been signed out. If this wasn't you, "
            "reset your password immediately."
        )
        await self._send(to, f"Your password was changed - {self._app_name}", body)
