"""
Application Middleware for the FollowTrain API.

Cross-cutting request handling shared by every route.

Key Middleware Components:
- `CorrelationMiddleware`: assigns a correlation ID to each request (reusing
  `X-Correlation-ID` / `X-Request-ID` when the caller sends one) and echoes it
  in the response.
- `ErrorHandlingMiddleware`: turns `FollowTrainError`s into JSON error
  envelopes with their mapped status code, and any unexpected exception into a
  generic 500 that does not leak internals.
- `PerformanceMiddleware`: logs request start and completion with timing,
  adds an `X-Process-Time` header and warns about slow requests.
- `register_exception_handlers`: reports request-body validation failures as
  400 `INVALID_INPUT` instead of FastAPI's default 422.

Add them so that correlation runs outermost and error handling innermost:
`ErrorHandlingMiddleware`, then `PerformanceMiddleware`, then
`CorrelationMiddleware`.
"""

import time
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .exceptions import FollowTrainError, to_http_exception
from .logging_config import set_correlation_id, get_logger

logger = get_logger("core.middleware")

SLOW_REQUEST_SECONDS = 1.0


def create_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build the JSON error envelope shared by every failure path"""
    error: Dict[str, Any] = {
        "type": error_type,
        "code": code,
        "message": message,
        "correlation_id": getattr(request.state, "correlation_id", None),
    }
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)

        response.headers["X-Correlation-ID"] = correlation_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for centralized error handling"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except FollowTrainError as e:
            log_extra = {
                "error_type": type(e).__name__,
                "error_code": e.error_code,
                "path": request.url.path,
                "method": request.method,
            }
            if e.status_code >= 500:
                logger.error(f"Application error: {e}", extra=log_extra, exc_info=True)
            else:
                logger.info(f"Request rejected: {e}", extra=log_extra)

            http_exc = to_http_exception(e)
            return create_error_response(
                request,
                http_exc.status_code,
                type(e).__name__,
                e.error_code,
                http_exc.detail["message"],
                http_exc.detail.get("details"),
            )

        except Exception as e:
            logger.error(
                f"Unexpected error: {e}",
                extra={
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                },
                exc_info=True,
            )
            return create_error_response(
                request,
                500,
                "InternalServerError",
                "INTERNAL_ERROR",
                "An unexpected error occurred",
            )


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware for request timing and logging"""

    def __init__(self, app: ASGIApp, slow_request_seconds: float = SLOW_REQUEST_SECONDS):
        super().__init__(app)
        self.slow_request_seconds = slow_request_seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            },
        )

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        process_time_ms = round(process_time * 1000, 2)
        response.headers["X-Process-Time"] = str(process_time_ms)

        logger.info(
            f"Request completed: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": process_time_ms,
            },
        )

        if process_time > self.slow_request_seconds:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={"process_time_ms": process_time_ms},
            )

        return response


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    logger.info(
        f"Request validation failed: {request.method} {request.url.path}",
        extra={"problems": problems},
    )
    return create_error_response(
        request,
        400,
        "InvalidInputError",
        "INVALID_INPUT",
        "Missing or invalid fields",
        {"fields": problems},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
