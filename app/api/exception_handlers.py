"""
Exception handlers for the FastAPI application.

Every error leaves the API as {"error": true, "message": ..., "status_code": ...};
validation errors add "details".
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def error_body(status_code: int, message: Any, **extra) -> dict[str, Any]:
    return {"error": True, "message": message, "status_code": status_code, **extra}


def _format_errors(errors: list[dict]) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", ())),
            "message": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in errors
    ]


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """HTTPException raised by routes, dependencies or Starlette routing (404/405)."""
    if isinstance(exc, StarletteHTTPException):
        status_code, detail, headers = exc.status_code, exc.detail, getattr(exc, "headers", None)
    else:
        status_code, detail, headers = status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), None

    return JSONResponse(status_code=status_code, content=error_body(status_code, detail), headers=headers)


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Request body, query or path parameters that fail schema validation."""
    code = status.HTTP_422_UNPROCESSABLE_ENTITY
    if not isinstance(exc, RequestValidationError):
        return JSONResponse(status_code=code, content=error_body(code, str(exc)))

    errors = _format_errors(exc.errors())
    logger.warning(f"Validation error on {request.url.path}: {errors}")
    return JSONResponse(status_code=code, content=error_body(code, "Validation error", details=errors))


async def pydantic_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    """Pydantic models built inside a route with invalid data."""
    code = status.HTTP_422_UNPROCESSABLE_ENTITY
    if not isinstance(exc, ValidationError):
        return JSONResponse(status_code=code, content=error_body(code, str(exc)))

    errors = _format_errors(exc.errors())
    logger.warning(f"Pydantic validation error: {errors}")
    return JSONResponse(status_code=code, content=error_body(code, "Data validation error", details=errors))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Anything not handled above.

    The traceback goes to the log (and Sentry); the client only sees a 500.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc!s}",
        exc_info=True,
    )
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content=error_body(code, "Internal server error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    logger.info("Exception handlers registered")
