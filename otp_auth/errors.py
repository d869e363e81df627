"""
Error Taxonomy
==============
Exceptions raised by the OTP authentication core.

Caller-facing errors carry a stable ``code`` and a ``public_message`` that
never includes internal details. Store-level errors are raised by the
credential/identity stores and translated by the service layer.
"""

from typing import Optional


class AuthError(Exception):
    """Base class for all authentication core errors."""

    code: str = "AUTH_ERROR"
    public_message: str = "Authentication failed."


# =============================================================================
# Caller-facing errors
# =============================================================================

class RateLimitedError(AuthError):
    """Too many code requests for this identity. Retryable after a wait."""

    code = "RATE_LIMITED"
    public_message = "You have made too many requests. Please try again later."

    def __init__(self, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(self.public_message)


class InvalidCredentialError(AuthError):
    """Wrong, expired, already-used or never-requested code."""

    code = "INVALID_OTP"
    public_message = "Invalid or expired OTP."

    def __init__(self):
        super().__init__(self.public_message)


class TransientStoreError(AuthError):
    """The code could not be stored. The code is never leaked."""

    code = "OTP_UNAVAILABLE"
    public_message = "Failed to process OTP request."

    def __init__(self):
        super().__init__(self.public_message)


class ServiceError(AuthError):
    """Backend or internal fault, distinct from bad user input."""

    code = "SERVICE_ERROR"
    public_message = "Internal server error."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class ConsistencyError(ServiceError):
    """An account reported as existing could not be read back."""

    code = "CONSISTENCY_ERROR"


class CodeGenerationError(ServiceError):
    """The secure random source failed while generating a code."""

    code = "CODE_GENERATION_FAILED"


# =============================================================================
# Store-level errors
# =============================================================================

class StoreError(Exception):
    """A storage backend failed (connection, timeout, driver error)."""

    def __init__(self, message: str, operation: str = "unknown"):
        self.operation = operation
        super().__init__(f"[{operation}] {message}")


class CredentialNotFound(LookupError):
    """No live credential exists for the identity."""


class AccountNotFound(LookupError):
    """No account matches the lookup."""


class AccountAlreadyExists(Exception):
    """An account with this identity already exists."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__("account already exists for identity")


# =============================================================================
# Token and configuration errors
# =============================================================================

class InvalidTokenError(AuthError):
    """Session token failed structural, signature or expiry checks."""

    code = "INVALID_TOKEN"
    public_message = "Invalid token."

    def __init__(self, reason: str = "invalid"):
        # reason is for diagnostics at the transport layer only
        self.reason = reason
        super().__init__(self.public_message)


class ConfigError(ValueError):
    """Configuration is missing or out of range."""
