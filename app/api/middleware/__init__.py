"""
Request middleware: bearer token gate and request logging.
"""

from app.api.middleware.auth import AuthenticationMiddleware
from app.api.middleware.logging_middleware import RequestLoggingMiddleware

__all__ = [
    "AuthenticationMiddleware",
    "RequestLoggingMiddleware",
]
