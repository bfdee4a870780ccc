"""
Repository for users and their preferences
"""

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db.tenancy import UserPreferences
from app.models.db.user import UserDB

logger = logging.getLogger(__name__)


class UserRepository:
    """
    Async CRUD for core.users and core.user_preferences.

    Attributes:
        db: SQLAlchemy async session
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_by_id(self, user_id: UUID) -> UserDB | None:
        result = await self._db.execute(select(UserDB).where(UserDB.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> UserDB | None:
        result = await self._db.execute(select(UserDB).where(UserDB.username == username))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> UserDB | None:
        result = await self._db.execute(select(UserDB).where(UserDB.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_by_login(self, login: str) -> UserDB | None:
        """Find a user by username or email."""
        stmt = select(UserDB).where(or_(UserDB.username == login, UserDB.email == login.lower()))
        result = await self._db.execute(stmt)
        return result.scalars().first()

    async def create(
        self,
        username: str,
        email: str,
        password_hash: str | None,
        full_name: str | None = None,
        auth_provider: str = "password",
    ) -> UserDB:
        """
        Create a user.

        Raises:
            sqlalchemy.exc.IntegrityError: If username or email already exists
        """
        user = UserDB(
            username=username,
            email=email.lower(),
            password_hash=password_hash,
            full_name=full_name,
            auth_provider=auth_provider,
            disabled=False,
            scopes=[],
        )
        self._db.add(user)
        await self._db.commit()
        await self._db.refresh(user)

        logger.info(f"User created: {username} (ID: {user.id})")
        return user

    async def get_preferences(self, user_id: UUID) -> UserPreferences | None:
        result = await self._db.execute(select(UserPreferences).where(UserPreferences.user_id == user_id))
        return result.scalar_one_or_none()

    async def upsert_preferences(self, user_id: UUID, **fields) -> UserPreferences:
        """Create the preferences row on first write, then apply fields."""
        preferences = await self.get_preferences(user_id)
        if preferences is None:
            preferences = UserPreferences(user_id=user_id)
            self._db.add(preferences)

        for key, value in fields.items():
            setattr(preferences, key, value)

        await self._db.commit()
        await self._db.refresh(preferences)
        return preferences
