"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class UnauthorizedError(AuthError):
    """
    Bad credentials or generic authentication failure.

    Login uses the same message for "no such user" and "wrong password".
    """


class EmailNotVerifiedError(AuthError):
    """Credentials are valid but the email address was never verified."""


class InvalidTokenError(AuthError):
    """
    Bearer token is invalid, expired, or no longer the current one.

    Also raised when a refresh token has already been rotated away.
    """


class MalformedTokenError(InvalidTokenError):
    """Token could not be decoded or its payload has the wrong shape."""


class SignatureInvalidError(InvalidTokenError):
    """Token signature or algorithm does not match."""


class TokenExpiredError(InvalidTokenError):
    """Token expiry is in the past."""


class TokenNotYetValidError(InvalidTokenError):
    """Token not-before time is in the future."""


class InvalidVerificationTokenError(AuthError):
    """Email verification token is wrong, expired, or already consumed."""


class InvalidResetTokenError(AuthError):
    """Password reset token is wrong, expired, or already consumed."""


class EmailAlreadyVerifiedError(AuthError):
    """Verification was requested for an address that is already verified."""


class RateLimitedError(AuthError):
    """Cooldown has not elapsed. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int, operation: str | None = None):
        self.retry_after_seconds = retry_after_seconds
        self.operation = operation
        minutes = max((retry_after_seconds + 59) // 60, 1)
        if operation:
            message = f"Please wait {minutes} minute(s) before requesting another {operation}."
        else:
            message = f"Rate limited. Retry after {retry_after_seconds} seconds."
        super().__init__(message)


class DuplicateEntryError(AuthError):
    """A user with this email already exists."""


class NotFoundError(AuthError):
    """
    Requested user does not exist.

    Note: anti-enumeration flows never surface this to the caller.
    """


class InternalError(AuthError):
    """Hashing or signing failed unexpectedly."""
