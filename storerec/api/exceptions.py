"""Custom exceptions for StoreRec.

Defines specific exception types for better error handling and reporting.
Inside the engine most of these are caught and discarded at a documented
seam; the HTTP layer maps the rest to JSON error responses.
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


class TransientFetchError(StoreRecException):
    """Raised when a category, pool or by-ids fetch fails."""

    def __init__(self, source: str, error: Exception):
        message = f"Failed to fetch from '{source}': {str(error)}"
        super().__init__(
            message=message,
            status_code=503,
            details={
                "source": source,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
        self.source = source


class StorageUnavailable(StoreRecException):
    """Raised when the persistent store cannot be read or written."""

    def __init__(self, key: str, error: Exception):
        message = f"Persistent store unavailable for key '{key}': {str(error)}"
        super().__init__(
            message=message,
            status_code=503,
            details={
                "key": key,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
        self.key = key


class DataIntegrityWarning(StoreRecException):
    """Raised when an upstream product payload cannot be normalized."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=422, details=details)


class ProductNotFoundError(StoreRecException):
    """Raised when the focal product of a page cannot be resolved."""

    def __init__(self, product_id: str, details: Optional[Dict[str, Any]] = None):
        message = f"Product '{product_id}' not found."
        super().__init__(
            message=message,
            status_code=404,
            details=details or {"product_id": product_id},
        )


class SupersededRequestError(StoreRecException):
    """Raised when a newer request for the same view finished first."""

    def __init__(self, view: str):
        message = f"Request for view '{view}' was superseded by a newer one."
        super().__init__(
            message=message,
            status_code=409,
            details={"view": view},
        )


class MissingSessionError(StoreRecException):
    """Raised when a session-bound endpoint is called without a session."""

    def __init__(self, header: str):
        message = f"Header '{header}' is required for this endpoint."
        super().__init__(
            message=message,
            status_code=400,
            details={"header": header},
        )
