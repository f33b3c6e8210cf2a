"""
API Exception Handlers

Every failure leaves the API as a JSON envelope:

    {"success": false, "statusCode": <int>, "message": <str>}

Validation failures add an `errors` list of `{field, message}` items. Route
misses keep the short `{"success": false, "message": "resource not found"}`.
"""

from typing import Any, Dict, List, Sequence

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.catalog.errors import CatalogError, ValidationError

logger = structlog.get_logger(__name__)

_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def format_validation_errors(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into `{field, message}` items."""
    formatted = []
    for error in errors:
        loc = list(error.get("loc", ()))
        if loc and loc[0] in _LOCATIONS:
            loc = loc[1:]
        formatted.append({
            "field": ".".join(str(part) for part in loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return formatted


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    logger.info(
        "Request rejected",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        error=exc.message,
        error_type=type(exc).__name__,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await catalog_error_handler(request, ValidationError(format_validation_errors(exc.errors())))


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(
        "Conflicting write",
        path=request.url.path,
        method=request.method,
        error=str(exc.orig),
    )
    return JSONResponse(
        status_code=409,
        content={
            "success": False,
            "statusCode": 409,
            "message": "Conflicting write, please retry",
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # unmatched path or method
    if exc.status_code in (404, 405):
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": "resource not found"},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "statusCode": exc.status_code,
            "message": str(exc.detail),
        },
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler.

    Catches unhandled exceptions and returns the standard error envelope.
    """
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "statusCode": 500,
            "message": "Internal Server Error",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
