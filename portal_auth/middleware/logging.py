"""
Request/response logging for the portal gateway.

Bodies are never logged: most of them carry passwords or OTP codes.
Sensitive headers and the flow cookie are dropped from the debug dump.
"""

import json
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie", "x-api-key", "x-auth-token"}
SKIP_PATHS = {"/health", "/favicon.ico"}


def redact_headers(headers) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in SENSITIVE_HEADERS}


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request and response with timing information.
    """

    def __init__(self, app, enable_detailed_logging: bool = False):
        """
        Initialize the logging middleware.

        Args:
            app: FastAPI application instance
            enable_detailed_logging: Whether to dump redacted request details at DEBUG
        """
        super().__init__(app)
        self.enable_detailed_logging = enable_detailed_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        should_log = self._should_log_request(request)

        if should_log:
            client_ip = request.client.host if request.client else None
            logger.info(f"📥 {request.method} {request.url.path} - {client_ip}")
            if self.enable_detailed_logging:
                logger.debug(f"📋 Request details: {json.dumps(self._extract_request_info(request), indent=2)}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"💥 {request.method} {request.url.path} - ERROR - {process_time:.3f}s - {type(e).__name__}"
            )
            # Re-raise the exception for error handling middleware
            raise

        process_time = time.time() - start_time
        if should_log:
            logger.info(
                f"📤 {request.method} {request.url.path} - {response.status_code} - "
                f"{process_time:.3f}s"
            )

        response.headers["X-Process-Time"] = str(process_time)
        return response

    def _extract_request_info(self, request: Request) -> Dict[str, Any]:
        return {
            "method": request.method,
            "path": str(request.url.path),
            "client_ip": request.client.host if request.client else None,
            "user_agent": request.headers.get("user-agent"),
            "content_type": request.headers.get("content-type"),
            "content_length": request.headers.get("content-length"),
            "timestamp": datetime.now().isoformat(),
            "headers": redact_headers(request.headers),
        }

    def _should_log_request(self, request: Request) -> bool:
        return request.url.path not in SKIP_PATHS
