"""
errors.py
Error taxonomy shared by the store, the lifecycle handlers and the UI.
"""

from __future__ import annotations


class InvalidInput(ValueError):
    """Raised by date helpers when handed something that is not a date."""


class CustomerError(Exception):
    """Base class for errors surfaced by customer operations."""

    kind = "CustomerError"

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class ValidationError(CustomerError):
    kind = "ValidationError"


class ComputationError(CustomerError):
    kind = "ComputationError"


class NotFound(CustomerError):
    kind = "NotFound"


class InvalidState(CustomerError):
    kind = "InvalidState"


class Exhausted(CustomerError):
    kind = "Exhausted"


class StoreError(CustomerError):
    kind = "StoreError"
