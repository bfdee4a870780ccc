"""
Follow-up automation API, mounted under /followups/automation.
"""

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_llm, get_tenant_context
from app.core.interfaces.llm import ILLM
from app.core.tenancy import TenantContext
from app.database.async_db import get_async_db
from app.models.automation import AIPreferences, ApprovalWorkflow, AutomationSettings, TriggerConditions
from app.repositories.transparency_repository import TransparencyRepository
from app.services.followup_ai_service import FollowupAIService
from app.services.followup_automation_service import (
    AutomationError,
    AutomationNotFoundError,
    AutomationPermissionError,
    FollowupAutomationService,
)

router = APIRouter(tags=["Follow-up Automation"])


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================


class RuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    is_active: bool = True
    trigger_conditions: TriggerConditions = Field(default_factory=TriggerConditions)
    automation_settings: AutomationSettings = Field(default_factory=AutomationSettings)
    ai_preferences: AIPreferences = Field(default_factory=AIPreferences)
    approval_workflow: ApprovalWorkflow = Field(default_factory=ApprovalWorkflow)


class RuleUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None
    trigger_conditions: TriggerConditions | None = None
    automation_settings: AutomationSettings | None = None
    ai_preferences: AIPreferences | None = None
    approval_workflow: ApprovalWorkflow | None = None


class ApprovalRequest(BaseModel):
    approved: bool
    comment: str | None = None


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def _http_error(e: AutomationError) -> HTTPException:
    if isinstance(e, AutomationNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, AutomationPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ============================================================
# ENDPOINTS
# ============================================================


@router.get("/rules")
async def list_rules(
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    rules = await FollowupAutomationService(db, context).list_rules()
    return {"rules": [rule.to_dict() for rule in rules], "total": len(rules)}


@router.post("/rules", status_code=status.HTTP_201_CREATED)
async def create_rule(
    data: RuleCreate,
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        rule = await FollowupAutomationService(db, context).create_rule(data.model_dump())
    except AutomationError as e:
        raise _http_error(e) from e
    return rule.to_dict()


@router.put("/rules/{rule_id}")
async def update_rule(
    data: RuleUpdate,
    rule_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        rule = await FollowupAutomationService(db, context).update_rule(rule_id, data.model_dump(exclude_unset=True))
    except AutomationError as e:
        raise _http_error(e) from e
    return rule.to_dict()


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        await FollowupAutomationService(db, context).delete_rule(rule_id)
    except AutomationError as e:
        raise _http_error(e) from e


@router.post("/process")
async def process_rules(
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    llm: ILLM = Depends(get_llm),  # noqa: B008
):
    """Run the active rules in scope now instead of waiting for the scheduler."""
    ai_service = FollowupAIService(llm=llm, transparency=TransparencyRepository(db, context))
    return await FollowupAutomationService(db, context, ai_service=ai_service).process_automation_rules()


@router.get("/executions")
async def list_executions(
    status_filter: Literal[
        "pending", "generating", "awaiting_approval", "approved", "rejected", "sent", "failed", "skipped"
    ]
    | None = Query(None, alias="status"),
    rule_id: uuid.UUID | None = Query(None),  # noqa: B008
    limit: int = Query(50, ge=1, le=500),
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    executions = await FollowupAutomationService(db, context).list_executions(
        status=status_filter, rule_id=rule_id, limit=limit
    )
    return {"executions": [execution.to_dict() for execution in executions], "total": len(executions)}


@router.post("/executions/{execution_id}/approval")
async def approve_execution(
    data: ApprovalRequest,
    execution_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        execution = await FollowupAutomationService(db, context).process_approval(
            execution_id, context.user_id, data.approved, data.comment
        )
    except AutomationError as e:
        raise _http_error(e) from e
    return execution.to_dict()


@router.get("/stats")
async def get_automation_stats(
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    return await FollowupAutomationService(db, context).get_stats()
