"""
HTTP-facing exception classes.

Raised by routers and the service facade; ``handlers.base_api_exception_handler``
renders them in the error envelope.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException
from ..responses import ErrorDetail, HTTPStatusCodes


class BaseAPIException(HTTPException):
    """HTTPException carrying an error code and context for the envelope"""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        headers: Optional[Dict[str, Any]] = None,
        **context
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.error_code = error_code
        self.context = context

    def to_error_detail(self) -> ErrorDetail:
        return ErrorDetail(code=self.error_code, message=self.detail, context=self.context or None)


class NotFoundException(BaseAPIException):
    """Unknown product class code (404)"""

    def __init__(self, resource: str, resource_id: str, message: Optional[str] = None):
        super().__init__(
            status_code=HTTPStatusCodes.NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
            message=message or f"{resource} with code '{resource_id}' not found",
            resource=resource,
            resource_id=str(resource_id),
        )


class BadRequestException(BaseAPIException):
    """Missing or empty query parameter (400)"""

    def __init__(self, message: str = "Bad request", error_code: str = "BAD_REQUEST", **context):
        super().__init__(
            status_code=HTTPStatusCodes.BAD_REQUEST,
            error_code=error_code,
            message=message,
            **context
        )
