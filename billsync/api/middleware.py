"""Middleware for the FastAPI application.

This module contains middleware that process requests and responses, and the
handlers that translate exceptions into HTTP responses.
"""

import time
import traceback
import uuid
from typing import Union

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from billsync.core.config import settings
from billsync.core.exceptions import (
    BillsyncException,
    DuplicateRecordError,
    ExternalServiceError,
    InvalidStateError,
    MalformedPayloadException,
    NotFoundException,
    WebhookMisconfiguredException,
    WebhookUnauthorizedException,
    unpack_validation_error,
)
from billsync.core.logging import logger


async def add_request_id(request: Request, call_next: callable) -> Response:
    """Middleware to generate and add a request ID to the request for tracing.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    request.state.request_id = str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


async def log_requests(request: Request, call_next: callable) -> Response:
    """Middleware to log incoming requests."""
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.with_context(request_id=getattr(request.state, "request_id", "unknown")).info(
        f"Handled request {request.method} {request.url.path} in {duration:.2f} seconds. "
        f"Response code: {response.status_code}"
    )
    return response


async def exception_logging_middleware(request: Request, call_next: callable) -> Response:
    """Middleware to log unhandled exceptions.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")

        response_content = {
            "detail": f"Internal Server Error: {exc.__class__.__name__}: {str(exc)}"
        }
        # Include stack trace only in development mode
        if settings.LOCAL_DEVELOPMENT or settings.DEBUG:
            response_content["trace"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=response_content)


# Exception handlers


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """Exception handler for request and model validation errors.

    Returns:
    -------
        JSONResponse: A 422 response listing each invalid location and its message.

    """
    error_messages = unpack_validation_error(exc)
    logger.error(f"Validation error: {error_messages}")
    return JSONResponse(status_code=422, content=error_messages)


async def not_found_exception_handler(request: Request, exc: NotFoundException) -> JSONResponse:
    """Exception handler for NotFoundException."""
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def invalid_state_exception_handler(request: Request, exc: InvalidStateError) -> JSONResponse:
    """Exception handler for InvalidStateError."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def external_service_exception_handler(
    request: Request, exc: ExternalServiceError
) -> JSONResponse:
    """Exception handler for failures of the billing provider."""
    logger.error(f"External service error: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


async def billsync_exception_handler(request: Request, exc: BillsyncException) -> JSONResponse:
    """Generic exception handler for all BillsyncException types.

    Maps exception types to HTTP status codes based on their semantic meaning.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (BillsyncException): The exception object that was raised.

    Returns:
    -------
        JSONResponse: HTTP response with appropriate status code and error details.

    """
    status_code_map = {
        # 400 Bad Request - undecodable webhook body
        MalformedPayloadException: 400,
        # 401 Unauthorized - missing or invalid webhook signature
        WebhookUnauthorizedException: 401,
        # 409 Conflict - lost a uniqueness race
        DuplicateRecordError: 409,
        # 500 Internal Server Error - operator has not configured the webhook secret
        WebhookMisconfiguredException: 500,
    }

    status_code = status_code_map.get(type(exc), 500)
    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc}")

    return JSONResponse(status_code=status_code, content={"detail": str(exc)})
