"""
AI transparency repository: agent activities, reasoning steps, settings and memories.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tenancy import TenantContext
from app.models.db.base import utcnow
from app.models.db.transparency import AgentActivity, AgentSetting, AgentThought, AIMemory

logger = logging.getLogger(__name__)


class TransparencyRepository:
    """Async repository for the ai schema. Every query is tenant scoped."""

    def __init__(self, db: AsyncSession, context: TenantContext) -> None:
        self._db = db
        self._context = context

    # =========================================================================
    # Activities and thoughts
    # =========================================================================

    async def find_activities(
        self,
        agent_id: str,
        activity_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AgentActivity]:
        """Activities of one agent, newest first."""
        stmt = self._context.apply(select(AgentActivity), AgentActivity).where(AgentActivity.agent_id == agent_id)
        if activity_type:
            stmt = stmt.where(AgentActivity.activity_type == activity_type)
        stmt = stmt.order_by(AgentActivity.created_at.desc()).limit(limit).offset(offset)

        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def find_thoughts(self, activity_id: UUID) -> list[AgentThought]:
        """Reasoning steps of an activity in scope, in step order."""
        stmt = (
            select(AgentThought)
            .join(AgentActivity, AgentActivity.id == AgentThought.activity_id)
            .where(AgentThought.activity_id == activity_id)
        )
        stmt = self._context.apply(stmt, AgentActivity).order_by(AgentThought.thought_step.asc())

        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def record_activity(
        self,
        agent_id: str,
        activity_type: str,
        description: str,
        related_entity_type: str | None = None,
        related_entity_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
        thoughts: list[dict[str, Any]] | None = None,
    ) -> AgentActivity:
        """Store an activity and, optionally, its numbered reasoning steps."""
        activity = AgentActivity(
            agent_id=agent_id,
            activity_type=activity_type,
            description=description,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            extra_metadata=metadata or {},
            **self._context.owner_fields(),
        )
        self._db.add(activity)
        await self._db.flush()

        for step, thought in enumerate(thoughts or [], start=1):
            self._db.add(
                AgentThought(
                    activity_id=activity.id,
                    thought_step=step,
                    reasoning=thought["reasoning"],
                    alternatives=thought.get("alternatives", []),
                    confidence=thought.get("confidence"),
                )
            )

        await self._db.commit()
        return activity

    # =========================================================================
    # Settings
    # =========================================================================

    def _settings_select(self, agent_id: str):
        stmt = select(AgentSetting).where(
            AgentSetting.agent_id == agent_id,
            AgentSetting.user_id == self._context.user_id,
        )
        if self._context.organization_id is not None:
            return stmt.where(AgentSetting.organization_id == self._context.organization_id)
        return stmt.where(AgentSetting.organization_id.is_(None))

    async def find_settings(self, agent_id: str) -> list[AgentSetting]:
        stmt = self._settings_select(agent_id).order_by(AgentSetting.setting_key.asc())
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def upsert_setting(self, agent_id: str, key: str, value: Any) -> AgentSetting:
        stmt = self._settings_select(agent_id).where(AgentSetting.setting_key == key)
        result = await self._db.execute(stmt)
        setting = result.scalar_one_or_none()

        if setting is None:
            setting = AgentSetting(agent_id=agent_id, setting_key=key, **self._context.owner_fields())
            self._db.add(setting)

        setting.setting_value = value
        setting.updated_at = utcnow()
        await self._db.commit()
        await self._db.refresh(setting)
        return setting

    # =========================================================================
    # Memories
    # =========================================================================

    async def find_memories(
        self,
        memory_type: str | None = None,
        contact_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AIMemory]:
        """Memories in scope, most important and most recent first."""
        stmt = self._context.apply(select(AIMemory), AIMemory)
        if memory_type:
            stmt = stmt.where(AIMemory.memory_type == memory_type)
        if contact_id:
            stmt = stmt.where(AIMemory.contact_id == contact_id)
        stmt = stmt.order_by(AIMemory.importance.desc(), AIMemory.created_at.desc()).limit(limit).offset(offset)

        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def get_memory(self, memory_id: UUID) -> AIMemory | None:
        stmt = self._context.apply(select(AIMemory), AIMemory).where(AIMemory.id == memory_id)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def save_memory(self, memory: AIMemory) -> AIMemory:
        memory.updated_at = utcnow()
        await self._db.commit()
        await self._db.refresh(memory)
        return memory

    async def delete_memory(self, memory: AIMemory) -> None:
        await self._db.delete(memory)
        await self._db.commit()
