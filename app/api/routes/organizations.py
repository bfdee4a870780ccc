# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Organization API: CRUD, switching, stats, branding and logo.
# Tenant-Aware: Yes - every endpoint below /{org_id} checks membership/role.
# ============================================================================
"""
Organizations API.

Any member can read an organization; admins change its data and branding;
only the owner deletes it.
"""

import uuid

from fastapi import APIRouter, Depends, File, HTTPException, Path, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    get_current_user_db,
    get_organization_by_id,
    require_admin,
    require_owner,
    verify_org_membership,
)
from app.api.routes.auth import issue_tokens
from app.database.async_db import get_async_db
from app.models.auth import TokenResponse
from app.models.db.tenancy import Organization, OrganizationMember
from app.models.db.user import UserDB
from app.services import logo_storage
from app.services.logo_storage import LogoValidationError
from app.services.organization_service import OrganizationService, OrganizationServiceError

router = APIRouter(tags=["Organizations"])

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================


class OrganizationCreate(BaseModel):
    """Schema for creating a new organization."""

    name: str = Field(..., min_length=2, max_length=255, description="Organization name")
    slug: str | None = Field(
        None, min_length=2, max_length=50, pattern=r"^[a-z0-9-]+$", description="URL-friendly identifier"
    )
    description: str | None = None
    domain: str | None = Field(None, max_length=255)


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    slug: str | None = Field(None, min_length=2, max_length=50, pattern=r"^[a-z0-9-]+$")
    description: str | None = None
    domain: str | None = Field(None, max_length=255)
    max_users: int | None = Field(None, ge=1, le=1000)


class BrandingUpdate(BaseModel):
    logo_url: str | None = Field(None, max_length=500)
    primary_color: str | None = Field(None, pattern=HEX_COLOR)
    secondary_color: str | None = Field(None, pattern=HEX_COLOR)
    accent_color: str | None = Field(None, pattern=HEX_COLOR)


class SwitchOrganizationResponse(TokenResponse):
    organization: dict


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def service_error(e: OrganizationServiceError | LogoValidationError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


# ============================================================
# ENDPOINTS
# ============================================================


@router.get("")
async def list_organizations(
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """List the organizations the current user belongs to, with their role."""
    organizations = await OrganizationService.with_session(db).list_for_user(user.id)
    return {"organizations": organizations, "total": len(organizations)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_organization(
    data: OrganizationCreate,
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """
    Create an organization.

    The creator becomes the owner and the organization becomes their current one.
    """
    try:
        org = await OrganizationService.with_session(db).create_organization(user, data.model_dump(exclude_none=True))
    except OrganizationServiceError as e:
        raise service_error(e) from e
    return {**org.to_dict(), "role": "owner"}


@router.get("/{org_id}")
async def get_organization(
    membership: OrganizationMember = Depends(verify_org_membership),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
):
    return {**org.to_dict(), "role": membership.role}


@router.put("/{org_id}")
async def update_organization(
    data: OrganizationUpdate,
    membership: OrganizationMember = Depends(require_admin),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        org = await OrganizationService.with_session(db).update_organization(org, data.model_dump(exclude_none=True))
    except OrganizationServiceError as e:
        raise service_error(e) from e
    return {**org.to_dict(), "role": membership.role}


@router.delete("/{org_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    _owner: OrganizationMember = Depends(require_owner),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    await OrganizationService.with_session(db).delete_organization(org)


@router.post("/{org_id}/switch", response_model=SwitchOrganizationResponse)
async def switch_organization(
    membership: OrganizationMember = Depends(verify_org_membership),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Select the organization and issue tokens scoped to it."""
    await OrganizationService.with_session(db).switch_organization(user, org)
    tokens = await issue_tokens(db, user, org_id=str(org.id))
    return SwitchOrganizationResponse(
        **tokens.model_dump(),
        organization={**org.to_dict(), "role": membership.role},
    )


@router.get("/{org_id}/stats")
async def get_organization_stats(
    _membership: OrganizationMember = Depends(verify_org_membership),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    return await OrganizationService.with_session(db).get_stats(org)


@router.get("/{org_id}/branding")
async def get_branding(
    _membership: OrganizationMember = Depends(verify_org_membership),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
):
    return org.branding


@router.put("/{org_id}/branding")
async def update_branding(
    data: BrandingUpdate,
    _admin: OrganizationMember = Depends(require_admin),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    return await OrganizationService.with_session(db).update_branding(org, data.model_dump(exclude_unset=True))


@router.post("/{org_id}/logo")
async def upload_logo(
    file: UploadFile | None = File(None),  # noqa: B008
    _admin: OrganizationMember = Depends(require_admin),  # noqa: B008
    org: Organization = Depends(get_organization_by_id),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """
    Upload the organization logo (PNG, JPEG, SVG or WebP, up to MAX_LOGO_SIZE).
    """
    data = await logo_storage.read_upload(file)
    content_type = file.content_type if file is not None else None

    try:
        logo_url = await OrganizationService.with_session(db).upload_logo(org, content_type, data)
    except LogoValidationError as e:
        raise service_error(e) from e
    return {"logo_url": logo_url, "branding": org.branding}


@router.get("/{org_id}/logo")
async def get_logo(org_id: uuid.UUID = Path(..., description="Organization ID")):  # noqa: B008
    path = logo_storage.find_logo(org_id)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Logo not found")
    return FileResponse(path, media_type=logo_storage.media_type_for(path))
