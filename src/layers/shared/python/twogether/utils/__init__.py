"""Utility functions and helpers."""

from twogether.utils.exceptions import (
    ConflictError,
    TwogetherError,
    ValidationError,
)
from twogether.utils.responses import error, options, success, validation_error

__all__ = [
    # Response helpers
    "success",
    "error",
    "options",
    "validation_error",
    # Exceptions
    "TwogetherError",
    "ValidationError",
    "ConflictError",
]
