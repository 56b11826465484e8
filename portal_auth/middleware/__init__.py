"""
Middleware package for the portal gateway.

Cross-cutting request concerns: request logging and error rendering.
"""

from .error_handling import ErrorHandlingMiddleware, auth_flow_error_handler, login_redirect_handler
from .logging import LoggingMiddleware

__all__ = [
    "ErrorHandlingMiddleware",
    "LoggingMiddleware",
    "auth_flow_error_handler",
    "login_redirect_handler",
]
