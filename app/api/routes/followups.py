# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Follow-up API: tracking, actions, stats, settings, reminders
#              and AI drafts.
# Tenant-Aware: Yes - follow-ups are scoped by TenantContext.
# ============================================================================
"""
Follow-ups API.

Literal paths (/stats, /due, /settings, ...) are declared before /{followup_id}.
"""

import uuid
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_llm, get_tenant_context
from app.core.interfaces.llm import ILLM
from app.core.tenancy import TenantContext
from app.database.async_db import get_async_db
from app.models.db.base import utcnow
from app.models.followups import FollowupDraft, FollowupDraftOptions, FollowupTemplate
from app.repositories.email_repository import EmailRepository
from app.repositories.transparency_repository import TransparencyRepository
from app.services.followup_ai_service import FollowupAIService, draft_context_for
from app.services.followup_service import (
    FollowupNotFoundError,
    FollowupService,
    FollowupServiceError,
    InvalidFollowupActionError,
)

router = APIRouter(tags=["Follow-ups"])

Status = Literal["pending", "due", "overdue", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================


class FollowupCreate(BaseModel):
    original_subject: str = Field(..., max_length=998)
    original_recipients: list[str] = Field(..., min_length=1)
    original_sent_at: datetime
    follow_up_days: int | None = Field(None, ge=1, le=365)
    priority: Priority = "medium"
    follow_up_type: Literal["manual", "auto", "scheduled"] = "manual"
    email_id: uuid.UUID | None = None
    notes: str | None = None
    metadata: dict | None = None


class FollowupUpdate(BaseModel):
    """An action, or plain edits of notes, priority and delay."""

    model_config = ConfigDict(populate_by_name=True)

    action: str | None = None
    snooze_until: datetime | None = Field(None, alias="snoozeUntil")
    notes: str | None = None
    priority: Priority | None = None
    follow_up_days: int | None = Field(None, ge=1, le=365)


class BulkUpdate(BaseModel):
    followup_ids: list[uuid.UUID] = Field(..., min_length=1, alias="followupIds")
    status: Status

    model_config = ConfigDict(populate_by_name=True)


class SettingsUpdate(BaseModel):
    auto_followup_enabled: bool | None = None
    default_followup_days: int | None = Field(None, ge=1, le=365)
    default_priority: Priority | None = None
    max_followups_per_contact: int | None = Field(None, ge=1, le=100)
    exclude_replies: bool | None = None
    enable_notifications: bool | None = None


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def _http_error(e: FollowupServiceError) -> HTTPException:
    if isinstance(e, FollowupNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ============================================================
# ENDPOINTS
# ============================================================


@router.get("")
async def list_followups(
    status_filter: list[Status] | None = Query(None, alias="status"),  # noqa: B008
    priority: list[Priority] | None = Query(None),  # noqa: B008
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Follow-ups in scope ordered by due date."""
    followups = await FollowupService(db, context).get_followups(
        statuses=status_filter, priorities=priority, limit=limit, offset=offset
    )
    return {"followups": [f.to_dict() for f in followups], "total": len(followups)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_followup(
    data: FollowupCreate,
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        followup = await FollowupService(db, context).create_followup(**data.model_dump())
    except FollowupServiceError as e:
        raise _http_error(e) from e
    return followup.to_dict()


@router.get("/stats")
async def get_followup_stats(
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    return await FollowupService(db, context).get_stats()


@router.get("/due")
async def get_due_followups(
    limit: int = Query(50, ge=1, le=500),
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    followups = await FollowupService(db, context).get_due_followups(limit=limit)
    return {"followups": [f.to_dict() for f in followups], "total": len(followups)}


@router.get("/templates", response_model=list[FollowupTemplate])
async def get_templates(
    priority: Priority | None = Query(None),
    days_since_original: int | None = Query(None, ge=0),
    _context: TenantContext = Depends(get_tenant_context),  # noqa: B008
):
    return FollowupAIService().get_templates(priority=priority, days_since_original=days_since_original)


@router.get("/settings")
async def get_followup_settings(
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    return await FollowupService(db, context).get_settings()


@router.put("/settings")
async def update_followup_settings(
    data: SettingsUpdate,
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        return await FollowupService(db, context).update_settings(data.model_dump(exclude_none=True))
    except FollowupServiceError as e:
        raise _http_error(e) from e


@router.get("/reminders/pending")
async def get_pending_reminders(
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Reminders of the current user whose time has come."""
    reminders = await FollowupService(db, context).get_pending_reminders(user_id=context.user_id)
    return {"reminders": [r.to_dict() for r in reminders], "total": len(reminders)}


@router.post("/reminders/{reminder_id}/sent")
async def mark_reminder_sent(
    reminder_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        reminder = await FollowupService(db, context).mark_reminder_sent(reminder_id, user_id=context.user_id)
    except FollowupServiceError as e:
        raise _http_error(e) from e
    return reminder.to_dict()


@router.post("/bulk")
async def bulk_update_followups(
    data: BulkUpdate,
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        updated = await FollowupService(db, context).bulk_update(data.followup_ids, data.status)
    except FollowupServiceError as e:
        raise _http_error(e) from e
    return {"updated": updated}


@router.get("/{followup_id}")
async def get_followup(
    followup_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        followup = await FollowupService(db, context).get_followup(followup_id)
    except FollowupServiceError as e:
        raise _http_error(e) from e
    return followup.to_dict()


@router.put("/{followup_id}")
async def update_followup(
    data: FollowupUpdate,
    followup_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """
    Apply an action (complete, sent, snooze, cancel) or edit the follow-up.

    snooze needs a future snoozeUntil.
    """
    service = FollowupService(db, context)
    try:
        if data.action is not None:
            followup = await service.apply_action(followup_id, data.action, data.snooze_until)
        else:
            edits = data.model_dump(include={"notes", "priority", "follow_up_days"}, exclude_none=True)
            if not edits:
                raise InvalidFollowupActionError("Nothing to update: provide an action or fields to edit")
            followup = await service.update_details(followup_id, edits)
    except FollowupServiceError as e:
        raise _http_error(e) from e
    return followup.to_dict()


@router.post("/{followup_id}/generate-draft", response_model=FollowupDraft)
async def generate_draft(
    options: FollowupDraftOptions | None = None,
    followup_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    llm: ILLM = Depends(get_llm),  # noqa: B008
):
    """Draft a follow-up email with the LLM, falling back to a template."""
    try:
        followup = await FollowupService(db, context).get_followup(followup_id)
    except FollowupServiceError as e:
        raise _http_error(e) from e

    tracked = None
    if followup.email_id:
        tracked = (await EmailRepository(db, context).get_many([followup.email_id])).get(followup.email_id)

    service = FollowupAIService(llm=llm, transparency=TransparencyRepository(db, context))
    return await service.generate_draft(draft_context_for(followup, utcnow(), tracked), options)
