"""
Smart folder repository.
"""

from app.models.db.followups import SmartFolder
from app.repositories.base import TenantScopedRepository


class SmartFolderRepository(TenantScopedRepository[SmartFolder]):
    """Smart folders are personal to their creator within the current scope."""

    model = SmartFolder
    order_by = ("display_order", "created_at")

    def _scoped_select(self):
        return super()._scoped_select().where(SmartFolder.user_id == self._context.user_id)

    async def find_active(self) -> list[SmartFolder]:
        stmt = self._scoped_select().where(SmartFolder.is_active.is_(True)).order_by(*self._ordering())
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def has_any(self) -> bool:
        stmt = self._scoped_select().with_only_columns(SmartFolder.id).limit(1)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def add_all(self, folders: list[dict]) -> list[SmartFolder]:
        entities = [SmartFolder(**data, **self._context.owner_fields()) for data in folders]
        self._db.add_all(entities)
        await self._db.commit()
        return entities
