"""Exception handlers. Every failure leaves the API as ``{"message": ..., **extra}``."""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from whbjj.errors import ApiError

logger = structlog.get_logger()


def _envelope(status_code: int, message: str, headers: dict[str, str] | None = None, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, **extra}, headers=headers)


async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api_error", path=request.url.path, method=request.method, error=exc.message)
    return _envelope(exc.status_code, exc.message, **exc.extra)


async def handle_http_exception(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (unknown path, wrong method) and any HTTPException raised directly."""
    return _envelope(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def handle_request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body, query and path parameters that fail their pydantic models are a 400 here, not FastAPI's 422."""
    return _envelope(400, "Validation error", errors=jsonable_encoder(exc.errors()))


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )
    return _envelope(500, "Internal server error")


_HANDLERS: tuple[tuple[type[Exception], Any], ...] = (
    (ApiError, handle_api_error),
    (StarletteHTTPException, handle_http_exception),
    (RequestValidationError, handle_request_validation),
    (Exception, handle_unexpected),
)


def setup_error_handlers(app: FastAPI) -> None:
    for exc_class, handler in _HANDLERS:
        app.add_exception_handler(exc_class, handler)
