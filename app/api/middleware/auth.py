"""
Authentication middleware.

Rejects requests to protected paths that carry no valid bearer token before
they reach the routes; routes still resolve the user through dependencies.
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.api.exception_handlers import error_body
from app.config.settings import get_settings
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)

_settings = get_settings()
API_V1_STR = _settings.API_V1_STR


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Bearer token gate for everything that is not public.

    The decoded claims are attached to request.state.user.
    """

    PUBLIC_PREFIXES: tuple[str, ...] = (
        f"{API_V1_STR}/auth/token",
        f"{API_V1_STR}/auth/login",
        f"{API_V1_STR}/auth/refresh",
        f"{API_V1_STR}/auth/register",
        f"{API_V1_STR}/auth/google",
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/media",
    )

    # Logos are fetched by <img> tags, which cannot send headers
    PUBLIC_PATTERNS: tuple[re.Pattern, ...] = (re.compile(rf"^{re.escape(API_V1_STR)}/organizations/[^/]+/logo$"),)

    def __init__(self, app: ASGIApp, token_service: TokenService | None = None) -> None:
        super().__init__(app)
        self._token_service = token_service or TokenService()

    def _is_public(self, request: Request) -> bool:
        path = request.url.path
        if path == "/" or request.method == "OPTIONS":
            return True
        if any(path.startswith(prefix) for prefix in self.PUBLIC_PREFIXES):
            return True
        return request.method == "GET" and any(p.match(path) for p in self.PUBLIC_PATTERNS)

    @staticmethod
    def _extract_token(request: Request) -> str | None:
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return None

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None

        return parts[1]

    @staticmethod
    def _unauthorized(message: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=error_body(status.HTTP_401_UNAUTHORIZED, message),
            headers={"WWW-Authenticate": "Bearer"},
        )

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> JSONResponse:
        if self._is_public(request):
            return await call_next(request)

        token = self._extract_token(request)
        if not token:
            logger.warning(f"Missing auth token for {request.url.path}")
            return self._unauthorized("Authentication required")

        if not self._token_service.verify_token(token, expected_type="access"):
            logger.warning(f"Invalid token for {request.url.path}")
            return self._unauthorized("Invalid or expired token")

        request.state.user = self._token_service.decode_token(token)
        return await call_next(request)
