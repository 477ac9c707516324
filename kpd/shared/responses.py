"""
Error envelope shared by every endpoint.

Successful responses are plain payload models (``{"data": ...}``); failures
always render as an ``ErrorResponse`` so clients can tell a missing product
class, a bad query and an internal failure apart by ``error_type``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field


class HTTPStatusCodes:
    """Status codes the API answers with"""

    OK = status.HTTP_200_OK
    BAD_REQUEST = status.HTTP_400_BAD_REQUEST
    NOT_FOUND = status.HTTP_404_NOT_FOUND
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_SERVER_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR
    SERVICE_UNAVAILABLE = status.HTTP_503_SERVICE_UNAVAILABLE


class ErrorDetail(BaseModel):
    """One problem with the request"""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable description")
    field: Optional[str] = Field(None, description="Offending query/path parameter")
    context: Optional[Dict[str, Any]] = Field(None, description="Extra details, e.g. the unknown code")


class ErrorResponse(BaseModel):
    """Envelope for every non-2xx response"""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "errors": [
                    {
                        "code": "RESOURCE_NOT_FOUND",
                        "message": "Product class with code 'A99' not found",
                        "context": {"resource": "Product class", "resource_id": "A99"},
                    }
                ],
                "message": "Product class with code 'A99' not found",
                "timestamp": "2025-01-25T12:00:00Z",
                "request_id": "req_20250125_120000_1a2b3c4d",
                "error_type": "RESOURCE_NOT_FOUND",
                "path": "/api/product_classes/by_code/A99",
                "method": "GET",
            }
        }
    )

    success: bool = False
    errors: List[ErrorDetail]
    message: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    request_id: Optional[str] = None
    error_type: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None


class ValidationErrorResponse(ErrorResponse):
    """422 envelope for rejected query or path parameters"""

    error_type: str = "VALIDATION_ERROR"


def error_response(
    errors: List[ErrorDetail],
    message: str,
    status_code: int = HTTPStatusCodes.BAD_REQUEST,
    **fields: Any,
) -> JSONResponse:
    """Render an ErrorResponse; ``fields`` fill request_id, error_type, path and method."""
    body = ErrorResponse(errors=errors, message=message, **fields)
    return JSONResponse(content=body.model_dump(mode="json", exclude_none=True), status_code=status_code)


def validation_error_response(errors: List[ErrorDetail], message: str, **fields: Any) -> JSONResponse:
    return error_response(
        errors,
        message,
        status_code=HTTPStatusCodes.UNPROCESSABLE_ENTITY,
        error_type="VALIDATION_ERROR",
        **fields,
    )
