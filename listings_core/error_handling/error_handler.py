"""
Error handler for listing core operations.

Runs store-backed operations, logs failures with diagnostic context and
resolves every outcome to an ``OperationResult`` so callers can render a
recoverable state.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from .errors import MarketplaceError, StoreError, ValidationError


# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """
    Outcome of a service operation.

    Attributes:
        success: Whether the operation completed
        error: Human-readable failure message
        record_id: Identifier of the created or affected record
        data: Operation-specific payload
        retryable: Whether the failure is transient
    """
    success: bool
    error: Optional[str] = None
    record_id: Optional[str] = None
    data: Any = None
    retryable: bool = False

    @classmethod
    def ok(cls, record_id: Optional[str] = None, data: Any = None) -> 'OperationResult':
        return cls(success=True, record_id=record_id, data=data)

    @classmethod
    def failed(cls, error: str, retryable: bool = False) -> 'OperationResult':
        return cls(success=False, error=error, retryable=retryable)


class ErrorHandler:
    """
    Maps exceptions raised by operations onto ``OperationResult`` values.

    Validation failures keep their message; store failures are logged and
    reported as retryable with a generic message; anything else is logged
    with full context and reported with the fallback message.
    """

    def __init__(self, fallback_message: str = "An error occurred."):
        self.fallback_message = fallback_message

    async def run(
        self,
        operation_name: str,
        operation: Callable[[], Awaitable[OperationResult]],
        failure_message: Optional[str] = None,
    ) -> OperationResult:
        """
        Execute an operation, converting raised errors into failed results.

        Args:
            operation_name: Name used in log records
            operation: Zero-argument coroutine function returning a result
            failure_message: Message reported for transient or unexpected errors

        Returns:
            The operation's result, or a failed result describing the error
        """
        try:
            return await operation()
        except ValidationError as e:
            logger.info(f"Operation {operation_name} rejected: {e}")
            return OperationResult.failed(str(e))
        except StoreError as e:
            self._log_error(operation_name, e)
            return OperationResult.failed(
                failure_message or self.fallback_message,
                retryable=True,
            )
        except MarketplaceError as e:
            self._log_error(operation_name, e)
            return OperationResult.failed(str(e))
        except Exception as e:
            self._log_error(operation_name, e)
            return OperationResult.failed(failure_message or self.fallback_message)

    def _log_error(self, operation_name: str, error: Exception) -> None:
        """
        Log error with timestamp, context, and diagnostic data.

        Args:
            operation_name: Name of the operation that failed
            error: The exception that occurred
        """
        context = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'operation': operation_name,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'code': getattr(error, 'code', None),
        }

        logger.error(
            f"Operation failed: {operation_name} | "
            f"Error: {type(error).__name__}: {str(error)}"
        )
        logger.debug(f"Full error context: {context}")
