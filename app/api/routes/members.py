# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Organization members API: list, invite, role changes, removal.
# Tenant-Aware: Yes - every endpoint is under /organizations/{org_id}.
# ============================================================================
"""
Organization members API.
"""

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_organization_by_id, require_admin, verify_org_membership
from app.database.async_db import get_async_db
from app.models.db.tenancy import Organization, OrganizationMember
from app.services.organization_service import OrganizationService, OrganizationServiceError

router = APIRouter(tags=["Organization Members"])


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================


class InviteRequest(BaseModel):
    email: EmailStr
    role: Literal["admin", "member"] = "member"


class RoleUpdate(BaseModel):
    role: str


# ============================================================
# ENDPOINTS
# ============================================================


@router.get("/{org_id}/members")
async def list_members(
    _membership: OrganizationMember = Depends(verify_org_membership),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    members = await OrganizationService.with_session(db).list_members(org)
    return {"members": members, "total": len(members)}


@router.post("/{org_id}/members/invite", status_code=status.HTTP_201_CREATED)
async def invite_member(
    data: InviteRequest,
    admin: OrganizationMember = Depends(require_admin),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Add an already registered user to the organization."""
    service = OrganizationService.with_session(db)
    try:
        member = await service.invite_member(org, data.email, data.role, invited_by=admin.user_id)
        return await service.get_member(org, member.user_id)
    except OrganizationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e


@router.get("/{org_id}/members/{user_id}")
async def get_member(
    user_id: uuid.UUID = Path(..., description="Member user ID"),  # noqa: B008
    _membership: OrganizationMember = Depends(verify_org_membership),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        return await OrganizationService.with_session(db).get_member(org, user_id)
    except OrganizationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e


@router.put("/{org_id}/members/{user_id}")
async def change_member_role(
    data: RoleUpdate,
    user_id: uuid.UUID = Path(..., description="Member user ID"),  # noqa: B008
    membership: OrganizationMember = Depends(verify_org_membership),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Change a member's role. Owner only."""
    try:
        return await OrganizationService.with_session(db).change_role(org, membership, user_id, data.role)
    except OrganizationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e


@router.delete("/{org_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    user_id: uuid.UUID = Path(..., description="Member user ID"),  # noqa: B008
    admin: OrganizationMember = Depends(require_admin),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        await OrganizationService.with_session(db).remove_member(org, admin, user_id)
    except OrganizationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
