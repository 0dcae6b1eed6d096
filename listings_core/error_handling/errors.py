"""
Domain error taxonomy for the listing core.

Validation errors are never retried, store errors are transient and may be
retried, and constraint violations are mapped to specific domain messages.
"""

from typing import Optional


# Store-specific conflict code raised on unique-constraint violations
UNIQUE_VIOLATION_CODE = "23505"


class MarketplaceError(Exception):
    """Base class for all listing core errors."""

    retryable = False


class ValidationError(MarketplaceError):
    """Rejected operation: unauthorized caller or invalid state transition."""


class NotFoundError(ValidationError):
    """A referenced record does not exist."""


class StoreError(MarketplaceError):
    """Transient failure reported by the backing store or network.

    Attributes:
        code: Store-specific error code, if the store reported one
    """

    retryable = True

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION_CODE


class DuplicateFeedbackError(MarketplaceError):
    """Feedback already exists for this (user, listing) pair."""

    def __init__(self, message: str = "You have already left feedback for this listing."):
        super().__init__(message)
