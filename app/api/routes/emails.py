"""
Emails API - record sent and received emails for follow-up tracking.
"""

import uuid
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_tenant_context
from app.core.tenancy import TenantContext
from app.database.async_db import get_async_db
from app.services.email_account_service import EmailAccountNotFoundError
from app.services.email_tracking_service import EmailTrackingService

router = APIRouter(tags=["Emails"])


class EmailIn(BaseModel):
    email_account_id: uuid.UUID | None = None
    message_id: str | None = Field(None, max_length=500)
    thread_id: str | None = Field(None, max_length=500)
    in_reply_to: str | None = Field(None, max_length=500)
    subject: str = Field("", max_length=998)
    sender: str = Field(..., min_length=1, max_length=255)
    recipients: list[str] = Field(default_factory=list)
    body: str | None = None
    sent_at: datetime


@router.post("/sent", status_code=status.HTTP_201_CREATED)
async def record_sent_email(
    data: EmailIn,
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Store a sent email; an automatic follow-up is started when the settings allow it."""
    try:
        email, followup = await EmailTrackingService(db, context).record_sent(data.model_dump())
    except EmailAccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return {"email": email.to_dict(), "followup": followup.to_dict() if followup else None}


@router.post("/received", status_code=status.HTTP_201_CREATED)
async def record_received_email(
    data: EmailIn,
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Store a received email and close the follow-ups it answers."""
    try:
        email, closed = await EmailTrackingService(db, context).record_received(data.model_dump())
    except EmailAccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return {"email": email.to_dict(), "completed_followups": [followup.to_dict() for followup in closed]}


@router.get("")
async def list_emails(
    direction: Literal["sent", "received"] | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    emails = await EmailTrackingService(db, context).list_emails(direction, limit=limit, offset=offset)
    return {"emails": [email.to_dict() for email in emails], "total": len(emails)}
