"""Error types raised by the API routers and the handlers that render them.

Every handled failure is rendered as

    {"error": {"code": "STEP_INCOMPLETE", "message": "...", "details": {...}}}

Auth server actions do not go through here: they return `ActionState`
objects for every expected failure.
"""

import logging
from typing import Union

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

Details = Union[dict, list, None]


class LykrException(Exception):
    """Base exception for Lykr application errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, error_code: str | None = None, details: Details = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details
        super().__init__(message)


class BusinessLogicError(LykrException):
    """The wizard refused an operation (incomplete step, invalid upload)."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "BUSINESS_LOGIC_ERROR"


class ResourceNotFoundError(LykrException):
    """A step key or an owned row that does not exist for this user."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}")


class ExternalServiceError(LykrException):
    """A third-party API (transcription, voice agent) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "EXTERNAL_SERVICE_ERROR"


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Details = None,
) -> JSONResponse:
    content = {"error": {"code": error_code, "message": message}}
    if details:
        content["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def error_response(exc: LykrException, carry_from: Response | None = None) -> JSONResponse:
    """Render `exc` directly from a route.

    Routes that set cookies on the injected response lose them when an
    exception reaches the handlers; `carry_from` copies them over.
    """
    response = create_error_response(exc.status_code, exc.message, exc.error_code, exc.details)
    if carry_from is not None:
        for cookie in carry_from.headers.getlist("set-cookie"):
            response.headers.append("set-cookie", cookie)
    return response


def _context(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def lykr_exception_handler(request: Request, exc: LykrException) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{exc.error_code} on {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, **_context(request)},
    )
    return error_response(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_context(request))

    response = create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )
    # WWW-Authenticate on 401s
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={**_context(request), "errors": exc.errors()},
    )
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(f"Database unavailable on {request.url.path}: {exc}", extra=_context(request))
    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.url.path}", extra=_context(request), exc_info=exc)
    # Internal details stay in the log
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    app.add_exception_handler(LykrException, lykr_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
