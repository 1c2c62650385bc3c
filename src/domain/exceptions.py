"""
Domain exceptions - Semantic error types for the registration workflow.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Every exception carries a stable ``kind`` so adapters can report it
in a machine-checkable way.
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    kind = "registration_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.kind


class ValidationError(RegistrationError):
    """Missing or malformed input."""

    kind = "validation_error"


class Unauthorized(RegistrationError):
    """Identity verification prerequisite not met."""

    kind = "unauthorized"


class NotFound(RegistrationError):
    """Referenced registration or verification record does not exist."""

    kind = "not_found"


class DuplicateIdentity(RegistrationError):
    """Email or contact number already belongs to another registration."""

    kind = "duplicate_identity"


class Expired(RegistrationError):
    """Verification code is older than the validity window."""

    kind = "expired"


class AttemptsExhausted(RegistrationError):
    """Too many verification attempts, a new code must be requested."""

    kind = "attempts_exhausted"


class InvalidCode(RegistrationError):
    """Verification code mismatch."""

    kind = "invalid_code"

    def __init__(self, remaining_attempts: int) -> None:
        super().__init__(f"Invalid code. {remaining_attempts} attempts remaining.")
        self.remaining_attempts = remaining_attempts


class ConcurrentModification(RegistrationError):
    """Registration was modified concurrently and the write could not be applied."""

    kind = "concurrent_modification"


class NotificationFailure(RegistrationError):
    """Notification could not be handed to its delivery channel."""

    kind = "notification_failure"
