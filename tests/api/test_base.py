"""Tests for api/base.py - Unified API response format."""

from datetime import timezone

from api.base import (
    error_response,
    ErrorCodes,
)


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response("TEST_ERROR", "Something went wrong")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "TEST_ERROR"
        assert resp.error.message == "Something went wrong"

    def test_request_id_generated(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_timestamp_is_utc(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestErrorCodes:
    """Codes returned for each auth failure."""

    def test_has_auth_codes(self):
        assert ErrorCodes.UNAUTHORIZED == "UNAUTHORIZED"
        assert ErrorCodes.EMAIL_NOT_VERIFIED == "EMAIL_NOT_VERIFIED"
        assert ErrorCodes.INVALID_TOKEN == "INVALID_TOKEN"
        assert ErrorCodes.TOKEN_EXPIRED == "TOKEN_EXPIRED"

    def test_has_action_token_codes(self):
        assert ErrorCodes.INVALID_VERIFICATION_TOKEN == "INVALID_VERIFICATION_TOKEN"
        assert ErrorCodes.INVALID_RESET_TOKEN == "INVALID_RESET_TOKEN"
        assert ErrorCodes.EMAIL_ALREADY_VERIFIED == "EMAIL_ALREADY_VERIFIED"

    def test_has_rate_limited(self):
        assert ErrorCodes.RATE_LIMIT_EXCEEDED == "RATE_LIMIT_EXCEEDED"

    def test_has_internal_error(self):
        assert ErrorCodes.INTERNAL_ERROR == "INTERNAL_ERROR"

    def test_has_validation_error(self):
        assert ErrorCodes.VALIDATION_ERROR == "VALIDATION_ERROR"
