"""
Smart folders API - saved follow-up filters, mounted under /followups/smart-folders.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_tenant_context
from app.core.tenancy import TenantContext
from app.database.async_db import get_async_db
from app.services.smart_folder_service import SmartFolderError, SmartFolderNotFoundError, SmartFolderService

router = APIRouter(tags=["Smart Folders"])

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class SmartFolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    color: str = Field("#3B82F6", pattern=HEX_COLOR)
    icon: str = Field("folder", max_length=50)
    filter_rules: dict[str, Any] = Field(default_factory=dict)
    sort_order: str = "due_date_asc"
    auto_refresh: bool = True
    show_count: bool = True
    display_order: int = 0


class SmartFolderUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    color: str | None = Field(None, pattern=HEX_COLOR)
    icon: str | None = Field(None, max_length=50)
    filter_rules: dict[str, Any] | None = None
    sort_order: str | None = None
    auto_refresh: bool | None = None
    show_count: bool | None = None
    display_order: int | None = None
    is_active: bool | None = None


def _http_error(e: SmartFolderError) -> HTTPException:
    code = status.HTTP_404_NOT_FOUND if isinstance(e, SmartFolderNotFoundError) else status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(e))


@router.get("")
async def list_smart_folders(
    include_count: bool = Query(False),
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Folders in display order; the defaults are created on first use."""
    folders = await SmartFolderService(db, context).list_folders(include_count=include_count)
    return {"folders": folders, "total": len(folders)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_smart_folder(
    data: SmartFolderCreate,
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        folder = await SmartFolderService(db, context).create_folder(data.model_dump())
    except SmartFolderError as e:
        raise _http_error(e) from e
    return folder.to_dict()


@router.put("/{folder_id}")
async def update_smart_folder(
    data: SmartFolderUpdate,
    folder_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        folder = await SmartFolderService(db, context).update_folder(folder_id, data.model_dump(exclude_unset=True))
    except SmartFolderError as e:
        raise _http_error(e) from e
    return folder.to_dict()


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_smart_folder(
    folder_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        await SmartFolderService(db, context).delete_folder(folder_id)
    except SmartFolderError as e:
        raise _http_error(e) from e


@router.get("/{folder_id}/followups")
async def get_folder_followups(
    folder_id: uuid.UUID = Path(...),  # noqa: B008
    limit: int = Query(100, ge=1, le=500),
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        followups = await SmartFolderService(db, context).folder_followups(folder_id, limit=limit)
    except SmartFolderError as e:
        raise _http_error(e) from e
    return {"followups": [f.to_dict() for f in followups], "total": len(followups)}
