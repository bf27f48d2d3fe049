"""Build a ready-to-use AuthService from Vault-held credentials."""

import logging

from auth.config import AuthConfig, load_auth_config
from auth.database import AuthDatabase
from auth.email_dispatcher import EmailDispatcher
from auth.hasher import SecretHasher
from auth.rate_limiter import CooldownLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.tokens import TokenCodec
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url, get_email_config

logger = logging.getLogger(__name__)


def create_auth_service(config: AuthConfig | None = None) -> AuthService:
    """
    Wire the auth service against Postgres and the email gateway.

    Args:
        config: Auth settings; loaded from Vault when omitted.

    Raises:
        ValueError: If Vault settings are missing from the environment.
        PermissionError: If Vault rejects the credentials.
    """
    config = config or load_auth_config()

    postgres = PostgresClient(get_database_url())
    email_client = EmailGatewayClient(**get_email_config())

    service = AuthService(
        config=config,
        users=AuthDatabase(postgres),
        hasher=SecretHasher(config.password_hash_rounds),
        codec=TokenCodec(config),
        cooldown=CooldownLimiter(config),
        email_dispatcher=EmailDispatcher(email_client, app_name=config.app_name),
        security_logger=SecurityLogger(postgres),
    )
    logger.info(f"Auth service ready for {config.app_name}")
    return service
