# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Generic async repository for tenant-owned tables. Every query
#              passes through TenantContext.apply().
# Tenant-Aware: Yes - organization scope or personal (user) scope.
# ============================================================================
"""
Base repository for tables using TenantOwnedMixin.

Usage:
    class ContactRepository(TenantScopedRepository[Contact]):
        model = Contact
        search_columns = ("firstname", "lastname", "email", "company")

    repository = ContactRepository(db, context)
    contacts = await repository.find_all(search="acme", limit=20)
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tenancy import TenantContext
from app.models.db.base import utcnow

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class TenantScopedRepository(Generic[ModelT]):
    """
    Async CRUD over one tenant-owned model.

    Subclasses set `model`, and optionally `search_columns` (ILIKE search)
    and `order_by` (column names, prefix "-" for descending).
    """

    model: ClassVar[type]
    search_columns: ClassVar[tuple[str, ...]] = ()
    order_by: ClassVar[tuple[str, ...]] = ("-created_at",)

    def __init__(self, db: AsyncSession, context: TenantContext) -> None:
        self._db = db
        self._context = context

    # =========================================================================
    # Query Helpers
    # =========================================================================

    def _scoped_select(self):
        return self._context.apply(select(self.model), self.model)

    def _ordering(self) -> list:
        clauses = []
        for name in self.order_by:
            column = getattr(self.model, name.lstrip("-"))
            clauses.append(column.desc() if name.startswith("-") else column.asc())
        return clauses

    def _search_clause(self, search: str):
        pattern = f"%{search.strip()}%"
        return or_(*(getattr(self.model, name).ilike(pattern) for name in self.search_columns))

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def find_all(
        self,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ModelT]:
        """List rows in scope, optionally filtered by a case-insensitive search term."""
        stmt = self._scoped_select()
        if search and self.search_columns:
            stmt = stmt.where(self._search_clause(search))
        stmt = stmt.order_by(*self._ordering()).limit(limit).offset(offset)

        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def count(self, search: str | None = None) -> int:
        scoped = self._scoped_select()
        if search and self.search_columns:
            scoped = scoped.where(self._search_clause(search))
        result = await self._db.execute(select(func.count()).select_from(scoped.subquery()))
        return result.scalar_one()

    async def get_by_id(self, entity_id: UUID) -> ModelT | None:
        """Get a row by id, or None when it does not exist in this scope."""
        stmt = self._scoped_select().where(self.model.id == entity_id)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def create(self, data: dict[str, Any]) -> ModelT:
        """Insert a row owned by the current scope."""
        entity = self.model(**data, **self._context.owner_fields())
        self._db.add(entity)
        await self._db.commit()
        await self._db.refresh(entity)
        logger.debug(f"Created {self.model.__name__} {entity.id}")
        return entity

    async def update(self, entity: ModelT, data: dict[str, Any]) -> ModelT:
        """Apply the given fields to an entity already loaded in scope."""
        for key, value in data.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        entity.updated_at = utcnow()
        await self._db.commit()
        await self._db.refresh(entity)
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self._db.delete(entity)
        await self._db.commit()
