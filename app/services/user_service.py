import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.auth import User, UserCreate
from app.models.db.user import UserDB
from app.repositories.user_repository import UserRepository
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)


class UserAlreadyExistsError(Exception):
    """Raised when registering a username or email that is taken."""

    pass


class UserService:
    """
    User registration and authentication against core.users.
    """

    def __init__(self, repository: UserRepository, token_service: TokenService):
        self._repository = repository
        self._token_service = token_service

    @classmethod
    def with_session(cls, db: AsyncSession, token_service: TokenService) -> "UserService":
        return cls(UserRepository(db), token_service)

    @staticmethod
    def to_public(user_db: UserDB) -> User:
        return User(
            id=str(user_db.id),
            username=user_db.username,
            email=user_db.email,
            full_name=user_db.full_name,
            disabled=user_db.disabled,
            auth_provider=user_db.auth_provider,
        )

    async def create_user(self, user_data: UserCreate) -> UserDB:
        """
        Register a password user.

        Raises:
            UserAlreadyExistsError: If the username or email is taken
        """
        if await self._repository.get_by_username(user_data.username):
            raise UserAlreadyExistsError(f"Username '{user_data.username}' already exists")
        if await self._repository.get_by_email(user_data.email):
            raise UserAlreadyExistsError(f"Email '{user_data.email}' is already registered")

        return await self._repository.create(
            username=user_data.username,
            email=user_data.email,
            password_hash=self._token_service.get_password_hash(user_data.password),
            full_name=user_data.full_name,
        )

    async def authenticate_user(self, login: str, password: str) -> Optional[UserDB]:
        """
        Authenticate by username or email.

        Returns:
            The user when the password matches and the account is enabled, else None
        """
        user_db = await self._repository.get_by_login(login)
        if not user_db or not user_db.password_hash:
            return None

        if not self._token_service.verify_password(password, user_db.password_hash):
            logger.warning(f"Failed authentication attempt for: {login}")
            return None

        if user_db.disabled:
            logger.warning(f"Authentication attempt for disabled user: {login}")
            return None

        logger.info(f"Successful authentication for: {user_db.username}")
        return user_db

    async def get_or_create_oauth_user(self, email: str, full_name: str | None) -> UserDB:
        """Find the user for a Google account, creating it on first login."""
        user_db = await self._repository.get_by_email(email)
        if user_db:
            return user_db

        username = await self._available_username(email.split("@")[0])
        logger.info(f"Creating user for Google account {email}")
        return await self._repository.create(
            username=username,
            email=email,
            password_hash=None,
            full_name=full_name,
            auth_provider="google",
        )

    async def _available_username(self, base: str) -> str:
        base = base[:40] or "user"
        candidate, counter = base, 1
        while await self._repository.get_by_username(candidate):
            candidate = f"{base}{counter}"
            counter += 1
        return candidate
