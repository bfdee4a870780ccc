"""
Services Module

Business logic between the API routes and the repositories. Services raise
domain exceptions; routes translate them to HTTP errors.
"""

from .token_service import TokenService
from .user_service import UserService

__all__ = [
    "TokenService",
    "UserService",
]
