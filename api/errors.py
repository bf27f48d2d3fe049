"""Translate auth errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    AuthError,
    DuplicateEntryError,
    EmailAlreadyVerifiedError,
    EmailNotVerifiedError,
    InternalError,
    InvalidResetTokenError,
    InvalidTokenError,
    InvalidVerificationTokenError,
    NotFoundError,
    RateLimitedError,
    TokenExpiredError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# Most specific first: TokenExpiredError must win over InvalidTokenError.
ERROR_STATUS: list[tuple[type[AuthError], int, str]] = [
    (TokenExpiredError, 401, ErrorCodes.TOKEN_EXPIRED),
    (InvalidTokenError, 401, ErrorCodes.INVALID_TOKEN),
    (UnauthorizedError, 401, ErrorCodes.UNAUTHORIZED),
    (EmailNotVerifiedError, 403, ErrorCodes.EMAIL_NOT_VERIFIED),
    (InvalidVerificationTokenError, 400, ErrorCodes.INVALID_VERIFICATION_TOKEN),
    (InvalidResetTokenError, 400, ErrorCodes.INVALID_RESET_TOKEN),
    (EmailAlreadyVerifiedError, 400, ErrorCodes.EMAIL_ALREADY_VERIFIED),
    (RateLimitedError, 429, ErrorCodes.RATE_LIMIT_EXCEEDED),
    (DuplicateEntryError, 409, ErrorCodes.DUPLICATE_ENTRY),
    (NotFoundError, 404, ErrorCodes.NOT_FOUND),
    (InternalError, 500, ErrorCodes.INTERNAL_ERROR),
]


def status_for(exc: AuthError) -> tuple[int, str]:
    """HTTP status and error code for an auth error."""
    for error_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code, code
    return 500, ErrorCodes.INTERNAL_ERROR


def auth_error_response(exc: AuthError) -> JSONResponse:
    """Build the JSON error envelope for an auth error."""
    status_code, code = status_for(exc)
    message = "An internal error occurred" if status_code == 500 else str(exc)
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=error_response(code, message).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        if isinstance(exc, InternalError):
            logger.error(f"Internal auth error: {exc}")
        return auth_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors(include_url=False, include_input=False)),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
            ).model_dump(mode="json"),
        )
