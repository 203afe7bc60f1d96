"""Error taxonomy shared by the store, the credential service and the HTTP layer."""

from __future__ import annotations


class CredentialError(Exception):
    """Base class for failures surfaced to callers of the credential service."""

    status_code = 500
    public_message = "server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class ValidationError(CredentialError):
    """Required input is missing; raised before the store is touched."""

    status_code = 400
    public_message = "required fields missing"


class ConflictError(CredentialError):
    status_code = 409
    public_message = "Email already registered"


class AuthenticationError(CredentialError):
    """Unknown email or wrong password. Both cases share one message."""

    status_code = 401
    public_message = "Invalid credentials"

    def __init__(self) -> None:
        super().__init__(self.public_message)


class SessionError(CredentialError):
    status_code = 401
    public_message = "Invalid or expired session"

    def __init__(self) -> None:
        super().__init__(self.public_message)


class StoreTimeoutError(CredentialError):
    """The store did not answer within the configured timeout."""

    status_code = 503
    public_message = "service unavailable"


class UnexpectedError(CredentialError):
    """Wraps lower-layer failures. The detail stays in the server log."""

    status_code = 500
    public_message = "server error"


__all__ = [
    "AuthenticationError",
    "ConflictError",
    "CredentialError",
    "SessionError",
    "StoreTimeoutError",
    "UnexpectedError",
    "ValidationError",
]
