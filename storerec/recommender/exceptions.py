"""Custom exceptions for StoreRec.

Defines specific exception types for better error handling and reporting.
Storage failures are deliberately absent: they propagate as whatever the
storage layer raised.
"""

from typing import Any, Dict, Optional


class StoreRecException(Exception):
    """Base exception for StoreRec errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class InvalidRequestError(StoreRecException):
    """Raised when a request fails validation before any storage access."""

    def __init__(self, field: str, reason: str, value: Any = None):
        message = f"Invalid value for '{field}': {reason}"
        super().__init__(
            message=message,
            status_code=400,
            details={"field": field, "reason": reason, "value": value},
        )


class ConfigurationError(StoreRecException):
    """Raised when engine or repository configuration is invalid."""

    def __init__(self, setting: str, reason: str):
        message = f"Invalid configuration '{setting}': {reason}"
        super().__init__(
            message=message,
            status_code=500,
            details={"setting": setting, "reason": reason},
        )


class DataStoreUnavailableError(StoreRecException):
    """Raised when the interaction store cannot be loaded."""

    def __init__(self, data_dir: str, error: Exception):
        message = f"Failed to load interaction store from '{data_dir}': {str(error)}"
        super().__init__(
            message=message,
            status_code=503,
            details={
                "data_dir": data_dir,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
