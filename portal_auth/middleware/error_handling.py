"""
Error handling for the portal gateway.

Auth flow failures are rendered through exception handlers so each keeps
its own status code; the middleware is the last line for anything else
and turns it into the same ErrorResponse body.
"""

import logging
import traceback
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from portal_auth.dependencies import LoginRedirect
from portal_auth.domain.errors import AuthFlowError
from portal_auth.schemas.auth import ErrorResponse

logger = logging.getLogger(__name__)


async def auth_flow_error_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
    """
    Render a typed auth failure.

    Args:
        request: HTTP request
        exc: The flow error raised by a state machine

    Returns:
        JSON error response with the error's own status code
    """
    logger.warning(
        f"🚨 {exc.code.value} ({exc.status_code}) for {request.method} {request.url.path}: {exc.message}"
    )

    error_response = ErrorResponse(
        success=False,
        error=exc.message,
        error_code=exc.code.value,
        details={**exc.details, "retryable": exc.retryable},
    )
    return JSONResponse(status_code=exc.status_code, content=error_response.model_dump())


async def login_redirect_handler(request: Request, exc: LoginRedirect) -> RedirectResponse:
    logger.info(f"🔒 {request.url.path} -> {exc.location} ({exc.reason})")
    return RedirectResponse(exc.location, status_code=303)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for centralized handling of unexpected errors.
    """

    def __init__(self, app, enable_error_logging: bool = True):
        """
        Initialize the error handling middleware.

        Args:
            app: FastAPI application instance
            enable_error_logging: Whether to log full tracebacks
        """
        super().__init__(app)
        self.enable_error_logging = enable_error_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            return await self._handle_unexpected_exception(request, e)

    async def _handle_unexpected_exception(self, request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"💥 Unexpected error for {request.method} {request.url.path}: {str(exc)}"
        )

        if self.enable_error_logging:
            logger.error(f"📋 Full traceback:\n{traceback.format_exc()}")

        error_response = ErrorResponse(
            success=False,
            error="Internal server error",
            error_code="INTERNAL_ERROR",
            details={
                "path": str(request.url.path),
                "method": request.method,
                "error_type": type(exc).__name__,
            },
        )

        return JSONResponse(status_code=500, content=error_response.model_dump())
