"""
Domain exception hierarchy.

Services raise these; the error handler registered in ``create_app`` turns
them into ``{"error": message}`` JSON responses with the matching status
code. They are business-rule rejections and are never retried.

Usage:
    from zimmet.errors import NotFoundError, ValidationError

    raise NotFoundError("Transaction", transaction_id)
    raise ValidationError("Note is required")
"""


class DomainError(Exception):
    """Base class for errors surfaced directly to the caller."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed input or a precondition of the operation not met."""

    status_code = 400


class AuthError(DomainError):
    """Missing, invalid or expired credential, or a disabled account."""

    status_code = 401


class ForbiddenError(DomainError):
    """Authenticated but not entitled to act on this resource."""

    status_code = 403


class NotFoundError(DomainError):
    """Unknown document, transaction or user.

    Args:
        resource: Human-readable entity name (e.g. "Document").
        resource_id: The key that was looked up.
    """

    status_code = 404

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id}"
        msg += " not found"
        super().__init__(msg)


class ConflictError(DomainError):
    """The operation lost against a concurrent or outstanding one."""

    status_code = 409


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
