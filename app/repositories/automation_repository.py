"""
Automation Repository - rules and executions of the follow-up automation.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.tenancy import TenantContext
from app.models.db.automation import FollowupAutomationExecution, FollowupAutomationRule
from app.models.db.base import utcnow

logger = logging.getLogger(__name__)


class AutomationRepository:
    """
    Async repository for crm.followup_automation_rules / _executions.

    Without a context (scheduler jobs) queries span every tenant.
    """

    def __init__(self, db: AsyncSession, context: TenantContext | None = None) -> None:
        self._db = db
        self._context = context

    def _scope(self, stmt, model):
        if self._context is None:
            return stmt
        return self._context.apply(stmt, model).where(model.user_id == self._context.user_id)

    # =========================================================================
    # Rules
    # =========================================================================

    async def find_rules(self, active_only: bool = False) -> list[FollowupAutomationRule]:
        stmt = self._scope(select(FollowupAutomationRule), FollowupAutomationRule)
        if active_only:
            stmt = stmt.where(FollowupAutomationRule.is_active.is_(True))
        stmt = stmt.order_by(FollowupAutomationRule.created_at.asc())
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def get_rule(self, rule_id: UUID) -> FollowupAutomationRule | None:
        stmt = self._scope(select(FollowupAutomationRule), FollowupAutomationRule).where(
            FollowupAutomationRule.id == rule_id
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def add_rule(self, rule: FollowupAutomationRule) -> FollowupAutomationRule:
        self._db.add(rule)
        await self._db.commit()
        await self._db.refresh(rule)
        return rule

    async def save_rule(self, rule: FollowupAutomationRule) -> FollowupAutomationRule:
        rule.updated_at = utcnow()
        await self._db.commit()
        await self._db.refresh(rule)
        return rule

    async def delete_rule(self, rule: FollowupAutomationRule) -> None:
        await self._db.delete(rule)
        await self._db.commit()

    # =========================================================================
    # Executions
    # =========================================================================

    async def get_execution(self, execution_id: UUID) -> FollowupAutomationExecution | None:
        stmt = (
            select(FollowupAutomationExecution)
            .where(FollowupAutomationExecution.id == execution_id)
            .options(selectinload(FollowupAutomationExecution.rule))
        )
        if self._context is not None:
            stmt = self._context.apply(stmt, FollowupAutomationExecution)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_executions(
        self,
        status: str | None = None,
        rule_id: UUID | None = None,
        limit: int = 50,
    ) -> list[FollowupAutomationExecution]:
        stmt = self._scope(select(FollowupAutomationExecution), FollowupAutomationExecution)
        if status:
            stmt = stmt.where(FollowupAutomationExecution.status == status)
        if rule_id:
            stmt = stmt.where(FollowupAutomationExecution.rule_id == rule_id)
        stmt = stmt.order_by(FollowupAutomationExecution.created_at.desc()).limit(limit)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def executions_for(self, rule_id: UUID, followup_id: UUID) -> list[FollowupAutomationExecution]:
        """Every execution of a rule against one follow-up."""
        stmt = select(FollowupAutomationExecution).where(
            FollowupAutomationExecution.rule_id == rule_id,
            FollowupAutomationExecution.followup_id == followup_id,
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def find_expired_approvals(self, now: datetime) -> list[FollowupAutomationExecution]:
        stmt = select(FollowupAutomationExecution).where(
            FollowupAutomationExecution.status == "awaiting_approval",
            FollowupAutomationExecution.approval_deadline.is_not(None),
            FollowupAutomationExecution.approval_deadline <= now,
        ).options(selectinload(FollowupAutomationExecution.rule))
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def add_execution(self, execution: FollowupAutomationExecution) -> FollowupAutomationExecution:
        self._db.add(execution)
        await self._db.commit()
        await self._db.refresh(execution)
        return execution

    async def save_execution(self, execution: FollowupAutomationExecution) -> FollowupAutomationExecution:
        execution.updated_at = utcnow()
        await self._db.commit()
        await self._db.refresh(execution)
        return execution

    # =========================================================================
    # Stats
    # =========================================================================

    async def execution_status_counts(self) -> dict[str, int]:
        stmt = self._scope(
            select(FollowupAutomationExecution.status, func.count()).select_from(FollowupAutomationExecution),
            FollowupAutomationExecution,
        ).group_by(FollowupAutomationExecution.status)
        result = await self._db.execute(stmt)
        return {status: count for status, count in result.all()}

    async def sent_executions(self) -> list[FollowupAutomationExecution]:
        stmt = self._scope(select(FollowupAutomationExecution), FollowupAutomationExecution).where(
            FollowupAutomationExecution.status == "sent"
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all())
