"""
CopilotSync Error Handling Framework.

Categorizes errors for consistent handling:
- FATAL: Stop, the caller must fix something (bad configuration)
- DEGRADED: Continue with reduced functionality, warn user (telemetry sinks,
  unreadable UI state)
- RECOVERABLE: Retry with backoff (persistence rejections)

Stale session ids and malformed code fences are deliberately absent from this
hierarchy: both degrade to "nothing happened" and are never raised.
"""

from enum import Enum
from typing import Optional, Any

from ..utils import console


class ErrorCategory(Enum):
    """Classifies errors for handling decisions."""
    FATAL = "fatal"  # Stop execution, user action required
    DEGRADED = "degraded"  # Continue with warning
    RECOVERABLE = "recoverable"  # Retry with backoff


class CopilotSyncError(Exception):
    """Base exception for CopilotSync errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.category = category
        self.context = context or {}
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        parts = [f"[{self.category.value.upper()}] {self.message}"]
        if self.original_error:
            parts.append(f"Cause: {str(self.original_error)}")
        return "\n".join(parts)


class FatalError(CopilotSyncError):
    """Stop execution - requires user intervention."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, ErrorCategory.FATAL, context, original_error)


class DegradedError(CopilotSyncError):
    """Continue with reduced functionality and warning."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, ErrorCategory.DEGRADED, context, original_error)


class RecoverableError(CopilotSyncError):
    """Retry with exponential backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
        max_retries: int = 3,
    ):
        super().__init__(message, ErrorCategory.RECOVERABLE, context, original_error)
        self.max_retries = max_retries


class PersistenceError(RecoverableError):
    """The persistence collaborator rejected a save."""


class ConfigError(FatalError):
    """Configuration file or environment value is invalid."""


def handle_error(error: CopilotSyncError, action_name: str = "operation") -> bool:
    """
    Handle an error based on its category.

    Args:
        error: CopilotSyncError to handle
        action_name: Name of action that failed (for logging)

    Returns:
        True if execution should continue, False if should stop
    """
    if error.category == ErrorCategory.FATAL:
        console.error(f"FATAL ERROR in {action_name}:")
        console.error(str(error))
        return False

    elif error.category == ErrorCategory.DEGRADED:
        console.warning(f"DEGRADED MODE in {action_name}:")
        console.warning(str(error))
        console.warning("Continuing with reduced functionality...")
        return True

    elif error.category == ErrorCategory.RECOVERABLE:
        console.warning(f"Recoverable error in {action_name}: {error.message}")
        # Caller responsible for retry logic
        return False

    return False


def backoff_delay(
    attempt: int,
    initial_delay: float,
    backoff_factor: float = 2.0,
) -> float:
    """
    Delay before retry number ``attempt`` (1-based), growing exponentially.

    Args:
        attempt: Retry attempt number, starting at 1
        initial_delay: Delay before the first retry
        backoff_factor: Multiplier applied per further attempt

    Returns:
        Delay in the same unit as ``initial_delay``
    """
    if attempt < 1:
        attempt = 1
    return initial_delay * (backoff_factor ** (attempt - 1))
