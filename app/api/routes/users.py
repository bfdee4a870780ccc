"""
User preferences API.
"""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_current_user_db
from app.database.async_db import get_async_db
from app.models.db.user import UserDB
from app.repositories.user_repository import UserRepository

router = APIRouter(tags=["Users"])

DEFAULT_PREFERENCES = {
    "current_organization_id": None,
    "theme": "system",
    "timezone": "UTC",
    "language": "en",
    "email_notifications": True,
}


class PreferencesUpdate(BaseModel):
    theme: Literal["light", "dark", "system"] | None = None
    timezone: str | None = Field(None, max_length=64)
    language: str | None = Field(None, max_length=10)
    email_notifications: bool | None = None


@router.get("/me/preferences")
async def get_preferences(
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    preferences = await UserRepository(db).get_preferences(user.id)
    if preferences is None:
        return {"user_id": str(user.id), **DEFAULT_PREFERENCES}
    return preferences.to_dict()


@router.put("/me/preferences")
async def update_preferences(
    data: PreferencesUpdate,
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Update preferences; the organization is changed through /organizations/{org_id}/switch."""
    preferences = await UserRepository(db).upsert_preferences(user.id, **data.model_dump(exclude_none=True))
    return preferences.to_dict()
