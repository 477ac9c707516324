"""
Shared exceptions for the KPD service.

Defines domain errors (store, import, validation) and the HTTP-facing
exceptions and handlers that translate them.
"""

from .base import KPDError, StoreError, ImportSourceError
from .data_exceptions import DataValidationError, LevelMismatchError, DataParsingError
from .custom_exceptions import BaseAPIException, NotFoundException, BadRequestException

__all__ = [
    # Domain Exceptions
    'KPDError',
    'StoreError',
    'ImportSourceError',

    # Data Exceptions
    'DataValidationError',
    'LevelMismatchError',
    'DataParsingError',

    # HTTP Exceptions
    'BaseAPIException',
    'NotFoundException',
    'BadRequestException',
]
