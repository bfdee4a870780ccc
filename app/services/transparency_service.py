"""
AI transparency: what the agents did, why, with which settings, and what they remember.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tenancy import TenantContext
from app.repositories.transparency_repository import TransparencyRepository

logger = logging.getLogger(__name__)


class MemoryNotFoundError(Exception):
    pass


class TransparencyService:
    def __init__(self, repository: TransparencyRepository):
        self._repository = repository

    @classmethod
    def with_session(cls, db: AsyncSession, context: TenantContext) -> "TransparencyService":
        return cls(TransparencyRepository(db, context))

    async def get_activities(
        self,
        agent_id: str,
        activity_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        activities = await self._repository.find_activities(agent_id, activity_type, limit=limit, offset=offset)
        return [activity.to_dict() for activity in activities]

    async def get_thoughts(self, activity_id: UUID) -> list[dict[str, Any]]:
        return [thought.to_dict() for thought in await self._repository.find_thoughts(activity_id)]

    async def get_settings(self, agent_id: str) -> list[dict[str, Any]]:
        return [setting.to_dict() for setting in await self._repository.find_settings(agent_id)]

    async def update_setting(self, agent_id: str, key: str, value: Any) -> dict[str, Any]:
        setting = await self._repository.upsert_setting(agent_id, key, value)
        logger.info(f"Agent setting {agent_id}.{key} updated")
        return setting.to_dict()

    async def get_memories(
        self,
        memory_type: str | None = None,
        contact_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        memories = await self._repository.find_memories(memory_type, contact_id, limit=limit, offset=offset)
        return [memory.to_dict() for memory in memories]

    async def update_memory(self, memory_id: UUID, content: str, importance: int | None = None) -> dict[str, Any]:
        memory = await self._repository.get_memory(memory_id)
        if memory is None:
            raise MemoryNotFoundError(f"Memory {memory_id} not found")

        memory.content = content
        if importance is not None:
            memory.importance = importance
        memory = await self._repository.save_memory(memory)
        return memory.to_dict()

    async def delete_memory(self, memory_id: UUID) -> None:
        memory = await self._repository.get_memory(memory_id)
        if memory is None:
            raise MemoryNotFoundError(f"Memory {memory_id} not found")
        await self._repository.delete_memory(memory)
