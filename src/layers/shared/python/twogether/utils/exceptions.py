"""Application exceptions."""

from typing import Any


class TwogetherError(Exception):
    """Base exception for the email pipeline."""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}


class ValidationError(TwogetherError):
    """Request or argument failed validation.

    Accepts either a message with an ``errors`` list, or just the list.
    """

    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str | list[dict[str, Any]] = "Validation failed", errors: list[dict] | None = None):
        if isinstance(message, list):
            errors = message
            message = "Validation failed"
        super().__init__(message)
        self.errors = errors or [{"field": None, "message": message}]


class ConflictError(TwogetherError):
    """Conditional write lost to a concurrent change."""

    status_code = 409
    default_code = "CONFLICT"
