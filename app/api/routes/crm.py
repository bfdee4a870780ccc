# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Contacts, products and suppliers CRUD.
# Tenant-Aware: Yes - rows are scoped by TenantContext (organization or user).
# ============================================================================
"""
CRM API - contacts, products and suppliers.

The three resources share the same endpoints (list with search/limit/offset,
create, get, update, delete) and differ only in their schemas and
repository, so their routers are built by one factory.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_tenant_context
from app.core.tenancy import TenantContext
from app.database.async_db import get_async_db
from app.repositories.base import TenantScopedRepository
from app.repositories.crm_repository import ContactRepository, ProductRepository, SupplierRepository


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================


class ContactCreate(BaseModel):
    firstname: str = Field(..., min_length=1, max_length=100)
    lastname: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)
    position: str | None = Field(None, max_length=255)
    notes: str | None = None
    personality_type: str | None = Field(None, max_length=50)
    personality_notes: str | None = None
    status: str = "active"
    last_contact: datetime | None = None


class ContactUpdate(ContactCreate):
    firstname: str | None = Field(None, min_length=1, max_length=100)
    status: str | None = None


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sku: str | None = Field(None, max_length=100)
    description: str | None = None
    category: str | None = Field(None, max_length=100)
    price: Decimal | None = Field(None, ge=0)
    stock: int = Field(0, ge=0)


class ProductUpdate(ProductCreate):
    name: str | None = Field(None, min_length=1, max_length=255)
    stock: int | None = Field(None, ge=0)


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    website: str | None = Field(None, max_length=255)
    notes: str | None = None
    reliability_score: int = Field(50, ge=0, le=100)


class SupplierUpdate(SupplierCreate):
    name: str | None = Field(None, min_length=1, max_length=255)
    reliability_score: int | None = Field(None, ge=0, le=100)


# ============================================================
# ROUTER FACTORY
# ============================================================


def build_crud_router(
    repository_cls: type[TenantScopedRepository],
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    label: str,
    tag: str,
) -> APIRouter:
    router = APIRouter(tags=[tag])

    async def get_or_404(repository: TenantScopedRepository, entity_id: uuid.UUID):
        entity = await repository.get_by_id(entity_id)
        if entity is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
        return entity

    @router.get("")
    async def list_entities(
        search: str | None = Query(None, description="Case-insensitive search"),
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
        context: TenantContext = Depends(get_tenant_context),  # noqa: B008
        db: AsyncSession = Depends(get_async_db),  # noqa: B008
    ):
        repository = repository_cls(db, context)
        items = await repository.find_all(search=search, limit=limit, offset=offset)
        return {
            "items": [item.to_dict() for item in items],
            "total": await repository.count(search=search),
            "limit": limit,
            "offset": offset,
        }

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_entity(
        data: create_schema,  # type: ignore[valid-type]
        context: TenantContext = Depends(get_tenant_context),  # noqa: B008
        db: AsyncSession = Depends(get_async_db),  # noqa: B008
    ):
        entity = await repository_cls(db, context).create(data.model_dump())
        return entity.to_dict()

    @router.get("/{entity_id}")
    async def get_entity(
        entity_id: uuid.UUID = Path(...),  # noqa: B008
        context: TenantContext = Depends(get_tenant_context),  # noqa: B008
        db: AsyncSession = Depends(get_async_db),  # noqa: B008
    ):
        entity = await get_or_404(repository_cls(db, context), entity_id)
        return entity.to_dict()

    @router.put("/{entity_id}")
    async def update_entity(
        data: update_schema,  # type: ignore[valid-type]
        entity_id: uuid.UUID = Path(...),  # noqa: B008
        context: TenantContext = Depends(get_tenant_context),  # noqa: B008
        db: AsyncSession = Depends(get_async_db),  # noqa: B008
    ):
        repository = repository_cls(db, context)
        entity = await get_or_404(repository, entity_id)
        entity = await repository.update(entity, data.model_dump(exclude_unset=True))
        return entity.to_dict()

    @router.delete("/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_entity(
        entity_id: uuid.UUID = Path(...),  # noqa: B008
        context: TenantContext = Depends(get_tenant_context),  # noqa: B008
        db: AsyncSession = Depends(get_async_db),  # noqa: B008
    ):
        repository = repository_cls(db, context)
        await repository.delete(await get_or_404(repository, entity_id))

    return router


contacts_router = build_crud_router(ContactRepository, ContactCreate, ContactUpdate, "Contact", "Contacts")
products_router = build_crud_router(ProductRepository, ProductCreate, ProductUpdate, "Product", "Products")
suppliers_router = build_crud_router(SupplierRepository, SupplierCreate, SupplierUpdate, "Supplier", "Suppliers")
