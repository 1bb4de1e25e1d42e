"""ASGI application for the brand kit service.

Every request gets an ``X-Request-ID``; errors leave the service as
``{"ok": false, "error", "code", "request_id"}`` whatever raised them.
Request lines are logged with status and timing, 4xx at WARNING and 5xx
at ERROR. JSON request bodies show up at DEBUG with secrets redacted.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from brandkit.api.v1 import router as api_v1_router
from brandkit.core.config import get_settings
from brandkit.core.database import db_manager
from brandkit.core.logging import get_logger, setup_logging
from brandkit.integrations.claude import close_claude, init_claude

setup_logging()
logger = get_logger(__name__)

REDACTED_KEYS = frozenset({"password", "token", "secret", "api_key", "authorization"})
BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again later."

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def sanitize_body(body: Any) -> Any:
    """Copy of a decoded JSON body with secret-looking keys masked."""
    if isinstance(body, dict):
        return {
            key: "****" if key.lower() in REDACTED_KEYS else sanitize_body(value)
            for key, value in body.items()
        }
    return body


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_content(request_id: str, error: str, code: str) -> dict[str, Any]:
    return {"ok": False, "error": error, "code": code, "request_id": request_id}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns the request id and logs each request with its outcome."""

    async def _log_body(self, request: Request, request_id: str) -> None:
        raw = await request.body()
        if not raw:
            return
        try:
            body: Any = sanitize_body(json.loads(raw))
        except ValueError:
            body = f"<{len(raw)} bytes, not JSON>"
        logger.debug("Request body", extra={"request_id": request_id, "body": body})

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        fields: dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        logger.info(
            "Request started",
            extra={**fields, "query_params": str(request.query_params) or None},
        )
        if request.method not in BODYLESS_METHODS and logger.isEnabledFor(logging.DEBUG):
            await self._log_body(request, request_id)

        started = time.monotonic()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        fields["status_code"] = response.status_code
        fields["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
        if response.status_code >= 500:
            logger.error("Request failed", extra=fields)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=fields)
        else:
            logger.info("Request completed", extra=fields)
        return response


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes, wrong methods and raised HTTPExceptions."""
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(_request_id(request), str(exc.detail), code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    request_id = _request_id(request)
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    logger.warning("Validation error", extra={"request_id": request_id, "errors": message})
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_content(request_id, message, "VALIDATION_ERROR"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything uncaught becomes a 500; details stay in the log."""
    request_id = _request_id(request)
    logger.error(
        "Unhandled exception",
        extra={
            "request_id": request_id,
            "error_type": type(exc).__name__,
            "error_message": str(exc),
        },
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_content(request_id, INTERNAL_ERROR_MESSAGE, "INTERNAL_ERROR"),
    )


health_router = APIRouter(tags=["Health"])


@health_router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@health_router.get("/health/db")
async def database_health() -> dict[str, str | bool]:
    """Reports whether ``SELECT 1`` succeeds."""
    reachable = await db_manager.check_connection()
    return {"status": "ok" if reachable else "error", "database": reachable}


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    settings = get_settings()
    logger.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    db_manager.init_db()
    claude = await init_claude()
    if not claude.available:
        logger.warning("ANTHROPIC_API_KEY is not set; generation endpoints will fail")

    try:
        yield
    finally:
        await close_claude()
        await db_manager.close()
        logger.info("Application stopped")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Added before CORS so it wraps innermost
    app.add_middleware(RequestLoggingMiddleware)
    origins = [settings.frontend_url] if settings.frontend_url else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(api_v1_router, prefix="/api/v1")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "brandkit.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
