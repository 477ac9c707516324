"""
Base exception hierarchy for the KPD service.

Every error raised by the store, the importer or the codec derives from
KPDError so callers can separate domain failures from programming errors.
"""

from typing import Optional, Dict, Any


class KPDError(Exception):
    """Base exception for all KPD service errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "KPD_ERROR"
        self.details = details or {}

    def __str__(self):
        return self.message


class StoreError(KPDError):
    """Failure of the underlying record store (connection, SQL, constraint)"""

    def __init__(
        self,
        message: str = "Record store operation failed",
        operation: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        details = {"operation": operation} if operation else {}
        if original_error is not None:
            details["cause"] = f"{type(original_error).__name__}: {original_error}"
        super().__init__(message, error_code="STORE_ERROR", details=details)
        self.operation = operation
        self.original_error = original_error


class ImportSourceError(KPDError):
    """Import source is missing or unreadable"""

    def __init__(self, message: str, source_path: Optional[str] = None):
        super().__init__(
            message,
            error_code="IMPORT_SOURCE_ERROR",
            details={"source_path": source_path} if source_path else {}
        )
        self.source_path = source_path
