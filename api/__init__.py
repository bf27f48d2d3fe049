"""HTTP boundary: response envelope and auth error translation."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    error_response,
    ErrorCodes,
)
from api.errors import register_error_handlers, status_for
