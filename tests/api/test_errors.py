"""Tests for api/errors.py - auth error to HTTP translation."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from api.base import ErrorCodes
from api.errors import register_error_handlers, status_for
from auth.exceptions import (
    DuplicateEntryError,
    EmailAlreadyVerifiedError,
    EmailNotVerifiedError,
    InternalError,
    InvalidResetTokenError,
    InvalidTokenError,
    InvalidVerificationTokenError,
    MalformedTokenError,
    NotFoundError,
    RateLimitedError,
    SignatureInvalidError,
    TokenExpiredError,
    UnauthorizedError,
)
from auth.types import RegisterRequest


class Body(BaseModel):
    name: str


@pytest.fixture
def client():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/unauthorized")
    async def unauthorized():
        raise UnauthorizedError("Invalid email or password")

    @app.get("/expired")
    async def expired():
        raise TokenExpiredError("Token expired")

    @app.get("/rate-limited")
    async def rate_limited():
        raise RateLimitedError(retry_after_seconds=90, operation="password reset")

    @app.get("/internal")
    async def internal():
        raise InternalError("bcrypt exploded with secret details")

    @app.get("/model-validation")
    async def model_validation():
        RegisterRequest(email="alice@example.com", password="short", name="Alice")

    @app.post("/request-validation")
    async def request_validation(body: Body):
        return body

    @app.get("/crash")
    async def crash():
        raise RuntimeError("unexpected")

    return TestClient(app, raise_server_exceptions=False)


class TestStatusFor:

    @pytest.mark.parametrize(
        "error, status_code, code",
        [
            (UnauthorizedError("x"), 401, ErrorCodes.UNAUTHORIZED),
            (EmailNotVerifiedError("x"), 403, ErrorCodes.EMAIL_NOT_VERIFIED),
            (InvalidTokenError("x"), 401, ErrorCodes.INVALID_TOKEN),
            (MalformedTokenError("x"), 401, ErrorCodes.INVALID_TOKEN),
            (SignatureInvalidError("x"), 401, ErrorCodes.INVALID_TOKEN),
            (TokenExpiredError("x"), 401, ErrorCodes.TOKEN_EXPIRED),
            (InvalidVerificationTokenError("x"), 400, ErrorCodes.INVALID_VERIFICATION_TOKEN),
            (InvalidResetTokenError("x"), 400, ErrorCodes.INVALID_RESET_TOKEN),
            (EmailAlreadyVerifiedError("x"), 400, ErrorCodes.EMAIL_ALREADY_VERIFIED),
            (RateLimitedError(60), 429, ErrorCodes.RATE_LIMIT_EXCEEDED),
            (DuplicateEntryError("x"), 409, ErrorCodes.DUPLICATE_ENTRY),
            (NotFoundError("x"), 404, ErrorCodes.NOT_FOUND),
            (InternalError("x"), 500, ErrorCodes.INTERNAL_ERROR),
        ],
    )
    def test_mapping(self, error, status_code, code):
        assert status_for(error) == (status_code, code)


class TestHandlers:

    def test_auth_error_envelope(self, client):
        response = client.get("/unauthorized")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"] == {
            "code": ErrorCodes.UNAUTHORIZED,
            "message": "Invalid email or password",
        }
        assert body["meta"]["request_id"]

    def test_expired_token_code(self, client):
        response = client.get("/expired")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == ErrorCodes.TOKEN_EXPIRED

    def test_rate_limited_sets_retry_after(self, client):
        response = client.get("/rate-limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "90"
        assert "2 minute(s)" in response.json()["error"]["message"]

    def test_internal_error_hides_details(self, client):
        response = client.get("/internal")

        assert response.status_code == 500
        assert "secret details" not in response.text
        assert response.json()["error"]["code"] == ErrorCodes.INTERNAL_ERROR

    def test_model_validation_is_422(self, client):
        response = client.get("/model-validation")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == ErrorCodes.VALIDATION_ERROR

    def test_request_validation_is_422(self, client):
        response = client.post("/request-validation", json={})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == ErrorCodes.VALIDATION_ERROR

    def test_unhandled_exception_is_500(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "An internal error occurred"
