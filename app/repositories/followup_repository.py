"""
Follow-up Repository - persistence for follow-ups, reminders and settings.

Follow-ups belong to the user who sent the tracked email. With a context the
queries are restricted to that user inside the selected organization (or to
personal rows); without one (scheduler jobs) they span every tenant.

Usage:
    repository = FollowupRepository(db, context)
    due = await repository.find(statuses=["due", "overdue"])
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.tenancy import TenantContext
from app.models.db.base import utcnow
from app.models.db.email import Email
from app.models.db.followups import (
    OPEN_FOLLOWUP_STATUSES,
    EmailFollowup,
    FollowupReminder,
    FollowupSettings,
)

logger = logging.getLogger(__name__)


class FollowupRepository:
    """Async repository for crm.email_followups."""

    def __init__(self, db: AsyncSession, context: TenantContext | None = None) -> None:
        self._db = db
        self._context = context

    def _scope(self, stmt):
        if self._context is None:
            return stmt
        stmt = self._context.apply(stmt, EmailFollowup)
        return stmt.where(EmailFollowup.user_id == self._context.user_id)

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def get_by_id(self, followup_id: UUID) -> EmailFollowup | None:
        stmt = self._scope(select(EmailFollowup)).where(EmailFollowup.id == followup_id)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email_id(self, email_id: UUID) -> EmailFollowup | None:
        stmt = (
            self._scope(select(EmailFollowup))
            .where(EmailFollowup.email_id == email_id)
            .order_by(EmailFollowup.created_at.desc())
        )
        result = await self._db.execute(stmt)
        return result.scalars().first()

    async def find(
        self,
        statuses: list[str] | None = None,
        priorities: list[str] | None = None,
        limit: int | None = 50,
        offset: int = 0,
    ) -> list[EmailFollowup]:
        """Follow-ups in scope ordered by due date, soonest first."""
        stmt = self._scope(select(EmailFollowup))
        if statuses:
            stmt = stmt.where(EmailFollowup.status.in_(statuses))
        if priorities:
            stmt = stmt.where(EmailFollowup.priority.in_(priorities))
        stmt = stmt.order_by(EmailFollowup.follow_up_due_at.asc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def find_open(self) -> list[EmailFollowup]:
        return await self.find(statuses=list(OPEN_FOLLOWUP_STATUSES), limit=None)

    async def find_open_with_emails(self, user_id: UUID) -> list[tuple[EmailFollowup, Email | None]]:
        """Open follow-ups of a user together with the tracked email, if any."""
        stmt = (
            select(EmailFollowup, Email)
            .outerjoin(Email, Email.id == EmailFollowup.email_id)
            .where(
                EmailFollowup.user_id == user_id,
                EmailFollowup.status.in_(OPEN_FOLLOWUP_STATUSES),
            )
        )
        result = await self._db.execute(stmt)
        return [(followup, email) for followup, email in result.all()]

    async def count_open_for_recipients(self, user_id: UUID, recipients: list[str]) -> int:
        """Open follow-ups of a user addressed to any of the recipients."""
        if not recipients:
            return 0
        stmt = select(func.count()).select_from(EmailFollowup).where(
            EmailFollowup.user_id == user_id,
            EmailFollowup.status.in_(OPEN_FOLLOWUP_STATUSES),
            EmailFollowup.original_recipients.overlap(recipients),
        )
        result = await self._db.execute(stmt)
        return result.scalar_one()

    async def status_counts(self) -> dict[str, int]:
        stmt = self._scope(select(EmailFollowup.status, func.count()).select_from(EmailFollowup)).group_by(
            EmailFollowup.status
        )
        result = await self._db.execute(stmt)
        return {status: count for status, count in result.all()}

    async def count_responded(self) -> int:
        stmt = self._scope(select(func.count()).select_from(EmailFollowup)).where(
            EmailFollowup.status == "completed",
            EmailFollowup.response_received_at.is_not(None),
        )
        result = await self._db.execute(stmt)
        return result.scalar_one()

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def add(self, followup: EmailFollowup) -> EmailFollowup:
        self._db.add(followup)
        await self._db.commit()
        await self._db.refresh(followup)
        return followup

    async def save(self, followup: EmailFollowup) -> EmailFollowup:
        followup.updated_at = utcnow()
        await self._db.commit()
        await self._db.refresh(followup)
        return followup

    async def save_all(self) -> None:
        await self._db.commit()

    async def bulk_update_status(self, followup_ids: list[UUID], status: str) -> list[UUID]:
        """Set the status of many follow-ups in scope. Returns the ids updated."""
        stmt = update(EmailFollowup).where(EmailFollowup.id.in_(followup_ids))
        if self._context is not None:
            stmt = stmt.where(EmailFollowup.user_id == self._context.user_id)
            if self._context.organization_id is not None:
                stmt = stmt.where(EmailFollowup.organization_id == self._context.organization_id)
            else:
                stmt = stmt.where(EmailFollowup.organization_id.is_(None))
        stmt = stmt.values(status=status, updated_at=utcnow()).returning(EmailFollowup.id)

        result = await self._db.execute(stmt)
        updated = list(result.scalars().all())
        await self._db.commit()
        return updated


class FollowupReminderRepository:
    """Async repository for crm.followup_reminders."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def add(self, reminder: FollowupReminder) -> FollowupReminder:
        self._db.add(reminder)
        await self._db.commit()
        await self._db.refresh(reminder)
        return reminder

    async def get_by_id(self, reminder_id: UUID, user_id: UUID | None = None) -> FollowupReminder | None:
        stmt = (
            select(FollowupReminder)
            .where(FollowupReminder.id == reminder_id)
            .options(selectinload(FollowupReminder.followup))
        )
        if user_id is not None:
            stmt = stmt.where(FollowupReminder.user_id == user_id)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_pending(self, now: datetime, user_id: UUID | None = None) -> list[FollowupReminder]:
        """Pending reminders whose time has come, oldest first, with their follow-up loaded."""
        stmt = (
            select(FollowupReminder)
            .where(
                FollowupReminder.status == "pending",
                FollowupReminder.reminder_time <= now,
            )
            .options(selectinload(FollowupReminder.followup))
        )
        if user_id is not None:
            stmt = stmt.where(FollowupReminder.user_id == user_id)
        stmt = stmt.order_by(FollowupReminder.reminder_time.asc())

        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def cancel_pending_for(self, followup_ids: list[UUID]) -> int:
        stmt = (
            update(FollowupReminder)
            .where(
                FollowupReminder.followup_id.in_(followup_ids),
                FollowupReminder.status == "pending",
            )
            .values(status="cancelled", updated_at=utcnow())
        )
        result = await self._db.execute(stmt)
        await self._db.commit()
        return result.rowcount

    async def save(self, reminder: FollowupReminder) -> FollowupReminder:
        await self._db.commit()
        await self._db.refresh(reminder)
        return reminder


class FollowupSettingsRepository:
    """Async repository for crm.followup_settings (one row per user)."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get(self, user_id: UUID) -> FollowupSettings | None:
        result = await self._db.execute(select(FollowupSettings).where(FollowupSettings.user_id == user_id))
        return result.scalar_one_or_none()

    async def upsert(self, user_id: UUID, **fields) -> FollowupSettings:
        settings = await self.get(user_id)
        if settings is None:
            settings = FollowupSettings(user_id=user_id)
            self._db.add(settings)

        for key, value in fields.items():
            setattr(settings, key, value)

        await self._db.commit()
        await self._db.refresh(settings)
        return settings
