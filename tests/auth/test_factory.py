"""Tests for create_auth_service - wiring from Vault credentials."""

from unittest.mock import patch
from uuid import uuid4

import pytest

from auth.database import AuthDatabase
from auth.exceptions import NotFoundError
from auth.factory import create_auth_service
from auth.service import AuthService

DATABASE_URL = "postgresql://test@localhost/usermgmt_test"
EMAIL_CONFIG = {
    "gateway_url": "https://gateway.example.com/send",
    "api_key": "key",
    "hmac_secret": "hmac",
}


@pytest.fixture
def vault():
    with patch("auth.factory.get_database_url", return_value=DATABASE_URL) as db_url, \
            patch("auth.factory.get_email_config", return_value=EMAIL_CONFIG) as email_config, \
            patch("auth.factory.PostgresClient") as postgres_cls:
        yield db_url, email_config, postgres_cls


class TestCreateAuthService:

    def test_builds_from_vault(self, config, vault):
        db_url, email_config, postgres_cls = vault

        service = create_auth_service(config)

        assert isinstance(service, AuthService)
        postgres_cls.assert_called_once_with(DATABASE_URL)
        db_url.assert_called_once()
        email_config.assert_called_once()
        assert isinstance(service._users, AuthDatabase)
        service._hasher.close()

    def test_loads_config_when_omitted(self, config, vault):
        with patch("auth.factory.load_auth_config", return_value=config) as load:
            service = create_auth_service()
        load.assert_called_once_with()
        service._hasher.close()

    @pytest.mark.asyncio
    async def test_service_reads_through_postgres(self, config, vault):
        _, _, postgres_cls = vault
        postgres_cls.return_value.execute_single.return_value = None
        service = create_auth_service(config)

        try:
            with pytest.raises(NotFoundError):
                await service.get_current_user(uuid4())
        finally:
            service._hasher.close()

        postgres_cls.return_value.execute_single.assert_called_once()
