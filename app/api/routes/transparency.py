"""
AI transparency API - agent activities, reasoning, settings and memories.

Query parameters keep the camelCase names the dashboard sends (agentId,
activityId, memoryId). A missing required one is a 400, not a 422.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_tenant_context
from app.core.tenancy import TenantContext
from app.database.async_db import get_async_db
from app.services.transparency_service import MemoryNotFoundError, TransparencyService

router = APIRouter(tags=["AI Transparency"])


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================


class SettingUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    agent_id: str = Field(..., min_length=1, alias="agentId")
    setting_key: str = Field(..., min_length=1, alias="settingKey")
    setting_value: Any = Field(None, alias="settingValue")


class MemoryUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    memory_id: uuid.UUID = Field(..., alias="memoryId")
    content: str = Field(..., min_length=1)
    importance: int | None = Field(None, ge=1, le=10)


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def get_transparency_service(
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
) -> TransparencyService:
    return TransparencyService.with_session(db, context)


def require_param(value: str | None, name: str) -> str:
    if not value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} is required")
    return value


def require_uuid(value: str | None, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(require_param(value, name))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} must be a UUID") from e


# ============================================================
# ENDPOINTS
# ============================================================


@router.get("/activities")
async def get_activities(
    agent_id: str | None = Query(None, alias="agentId"),
    activity_type: str | None = Query(None, alias="activityType"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: TransparencyService = Depends(get_transparency_service),  # noqa: B008
):
    agent_id = require_param(agent_id, "agentId")
    activities = await service.get_activities(agent_id, activity_type, limit=limit, offset=offset)
    return {"activities": activities, "total": len(activities)}


@router.get("/thoughts")
async def get_thoughts(
    activity_id: str | None = Query(None, alias="activityId"),
    service: TransparencyService = Depends(get_transparency_service),  # noqa: B008
):
    thoughts = await service.get_thoughts(require_uuid(activity_id, "activityId"))
    return {"thoughts": thoughts}


@router.get("/settings")
async def get_settings(
    agent_id: str | None = Query(None, alias="agentId"),
    service: TransparencyService = Depends(get_transparency_service),  # noqa: B008
):
    settings = await service.get_settings(require_param(agent_id, "agentId"))
    return {"settings": settings}


@router.put("/settings")
async def update_setting(
    data: SettingUpdate,
    service: TransparencyService = Depends(get_transparency_service),  # noqa: B008
):
    return await service.update_setting(data.agent_id, data.setting_key, data.setting_value)


@router.get("/memories")
async def get_memories(
    memory_type: str | None = Query(None, alias="memoryType"),
    contact_id: uuid.UUID | None = Query(None, alias="contactId"),  # noqa: B008
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: TransparencyService = Depends(get_transparency_service),  # noqa: B008
):
    memories = await service.get_memories(memory_type, contact_id, limit=limit, offset=offset)
    return {"memories": memories, "total": len(memories)}


@router.put("/memories")
async def update_memory(
    data: MemoryUpdate,
    service: TransparencyService = Depends(get_transparency_service),  # noqa: B008
):
    try:
        return await service.update_memory(data.memory_id, data.content, data.importance)
    except MemoryNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/memories")
async def delete_memory(
    memory_id: str | None = Query(None, alias="memoryId"),
    service: TransparencyService = Depends(get_transparency_service),  # noqa: B008
):
    try:
        await service.delete_memory(require_uuid(memory_id, "memoryId"))
    except MemoryNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return {"success": True}
