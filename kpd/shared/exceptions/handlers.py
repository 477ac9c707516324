"""
Exception handlers for the FastAPI application.

Keeps the three failure tiers distinguishable end-to-end: missing resources
(404), bad input (400/422) and internal failures (500).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Union
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.config import settings
from ..responses import ErrorDetail, HTTPStatusCodes, error_response, validation_error_response
from .base import KPDError
from .custom_exceptions import BaseAPIException
from .data_exceptions import DataValidationError

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_SERVER_ERROR",
    503: "SERVICE_UNAVAILABLE",
}

# longest echoed parameter value in validation errors
MAX_ECHOED_INPUT = 100


def _generate_request_id() -> str:
    """Generate a unique request ID for error tracking."""
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"req_{timestamp}_{uuid4().hex[:8]}"


def _request_fields(request: Request, request_id: str) -> Dict[str, Any]:
    return {"request_id": request_id, "path": str(request.url.path), "method": request.method}


def _extract_validation_errors(exc: RequestValidationError) -> List[ErrorDetail]:
    """One ErrorDetail per rejected query/path parameter."""
    details = []
    for error in exc.errors():
        # loc starts with "query" or "path"
        field_path = ".".join(str(loc) for loc in error["loc"][1:])

        value = error.get("input")
        if value is not None and len(str(value)) > MAX_ECHOED_INPUT:
            value = str(value)[:MAX_ECHOED_INPUT] + "..."

        details.append(ErrorDetail(
            code="VALIDATION_ERROR",
            message=error["msg"],
            field=field_path or "unknown",
            context={"type": error["type"], "value": value},
        ))
    return details


async def base_api_exception_handler(request: Request, exc: BaseAPIException) -> JSONResponse:
    """Not-found and bad-request errors raised by routers and services."""
    fields = _request_fields(request, _generate_request_id())

    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"API Exception [{fields['request_id']}]: {exc.error_code} - {exc.detail}",
        extra={**fields, "status_code": exc.status_code, "error_code": exc.error_code},
    )

    return error_response(
        [exc.to_error_detail()],
        exc.detail,
        status_code=exc.status_code,
        error_type=exc.error_code,
        **fields,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException]
) -> JSONResponse:
    """Plain HTTP errors, e.g. unknown routes or disallowed methods."""
    fields = _request_fields(request, _generate_request_id())
    logger.info(f"HTTP Exception [{fields['request_id']}]: {exc.status_code} - {exc.detail}", extra=fields)

    error_code = HTTP_ERROR_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code} Error"

    return error_response(
        [ErrorDetail(code=error_code, message=message, context={"status_code": exc.status_code})],
        message,
        status_code=exc.status_code,
        error_type=error_code,
        **fields,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Out-of-range limits, unknown languages and other rejected parameters."""
    fields = _request_fields(request, _generate_request_id())
    errors = _extract_validation_errors(exc)
    logger.warning(f"Validation Error [{fields['request_id']}]: {len(errors)} validation errors", extra=fields)

    return validation_error_response(errors, f"Validation failed for {len(errors)} field(s)", **fields)


async def data_validation_exception_handler(request: Request, exc: DataValidationError) -> JSONResponse:
    """Domain validation errors (bad codes, level mismatches) reaching the HTTP layer."""
    fields = _request_fields(request, _generate_request_id())
    logger.warning(
        f"Data Validation Error [{fields['request_id']}]: {exc.field_name} - {exc}",
        extra={**fields, "field": exc.field_name},
    )

    return error_response(
        [ErrorDetail(code=exc.error_code, message=str(exc), field=exc.field_name)],
        "Data validation failed",
        status_code=HTTPStatusCodes.BAD_REQUEST,
        error_type=exc.error_code,
        **fields,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle everything else, store failures included.

    The stack trace is logged; exception text is only returned in debug mode.
    """
    fields = _request_fields(request, _generate_request_id())
    logger.exception(
        f"Unhandled Exception [{fields['request_id']}]: {type(exc).__name__}: {exc}",
        extra={**fields, "exception_type": type(exc).__name__},
    )

    message = f"{type(exc).__name__}: {exc}" if settings.debug else "An unexpected error occurred"
    context = {"exception_type": type(exc).__name__, "request_id": fields["request_id"]}
    if isinstance(exc, KPDError):
        context["error_code"] = exc.error_code

    return error_response(
        [ErrorDetail(code="INTERNAL_SERVER_ERROR", message=message, context=context)],
        "Internal server error",
        status_code=HTTPStatusCodes.INTERNAL_SERVER_ERROR,
        error_type="INTERNAL_SERVER_ERROR",
        **fields,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the app."""
    app.add_exception_handler(BaseAPIException, base_api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DataValidationError, data_validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
