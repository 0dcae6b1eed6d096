"""
Error handling module for the listing core.

Provides the domain error taxonomy, result mapping and retry scheduling.
"""

from .errors import (
    MarketplaceError,
    ValidationError,
    NotFoundError,
    StoreError,
    DuplicateFeedbackError,
    UNIQUE_VIOLATION_CODE,
)
from .error_handler import ErrorHandler, OperationResult
from .retry_scheduler import RetryScheduler, RetryHandle

__all__ = [
    'MarketplaceError',
    'ValidationError',
    'NotFoundError',
    'StoreError',
    'DuplicateFeedbackError',
    'UNIQUE_VIOLATION_CODE',
    'ErrorHandler',
    'OperationResult',
    'RetryScheduler',
    'RetryHandle',
]
