"""
Data-related exception classes.

Handles row validation and parsing errors raised while importing KPD data.
"""

from typing import Optional
from .base import KPDError


class DataValidationError(KPDError):
    """Data validation error"""

    def __init__(
        self,
        message: str = "Data validation failed",
        field_name: Optional[str] = None
    ):
        super().__init__(message, error_code="DATA_VALIDATION_ERROR", details={"field": field_name} if field_name else {})
        self.field_name = field_name


class LevelMismatchError(DataValidationError):
    """Path segment count disagrees with the declared hierarchy level"""

    def __init__(self, expected_level: int, actual_level: int):
        super().__init__(
            f"Level mismatch: expected {expected_level} levels, got {actual_level}",
            field_name="level"
        )
        self.expected_level = expected_level
        self.actual_level = actual_level


class DataParsingError(KPDError):
    """Data parsing error"""

    def __init__(
        self,
        message: str = "Data parsing failed",
        line_number: Optional[int] = None,
        raw_content: Optional[str] = None
    ):
        super().__init__(message, error_code="DATA_PARSING_ERROR")
        self.line_number = line_number
        self.raw_content = raw_content[:1000] if raw_content else None  # Limit for logging
