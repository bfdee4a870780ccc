# ============================================================================
# SCOPE: MIXED
# Description: FastAPI dependencies. Authentication is global; the tenant
#              context and the membership checks are tenant-aware.
# Tenant-Aware: Partial - "TENANCY DEPENDENCIES" section is tenant-aware.
# ============================================================================
import logging
from uuid import UUID

from fastapi import Depends, HTTPException, Path, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings
from app.core.interfaces.llm import ILLM
from app.core.tenancy import TenantContext
from app.database.async_db import get_async_db
from app.integrations.llm import create_ollama_llm
from app.models.db.tenancy import Organization, OrganizationMember
from app.models.db.user import UserDB
from app.repositories.organization_repository import OrganizationRepository
from app.repositories.user_repository import UserRepository
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)

_settings = get_settings()
API_V1_STR = _settings.API_V1_STR

token_service = TokenService()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{API_V1_STR}/auth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _parse_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


# ============================================================
# AUTHENTICATION DEPENDENCIES
# [GLOBAL] - OAuth2 bearer tokens
# ============================================================


async def get_token_payload(token: str = Depends(oauth2_scheme)) -> dict:  # noqa: B008
    """Claims of a valid, unrevoked access token."""
    if not token_service.verify_token(token, expected_type="access"):
        raise _unauthorized("Invalid or expired token")
    return token_service.decode_token(token)


async def get_current_user_db(
    payload: dict = Depends(get_token_payload),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
) -> UserDB:
    """
    Get the authenticated user row.

    Raises 401 when the token subject no longer exists and 403 when the
    account is disabled.
    """
    user_id = _parse_uuid(payload.get("sub"))
    if user_id is None:
        raise _unauthorized("Invalid token: missing subject")

    user = await UserRepository(db).get_by_id(user_id)
    if not user:
        raise _unauthorized("User not found")

    if user.disabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is disabled",
        )

    return user


# ============================================================
# TENANCY DEPENDENCIES
# [MULTI-TENANT] - Organization scope and membership checks
# ============================================================


async def get_tenant_context(
    payload: dict = Depends(get_token_payload),  # noqa: B008
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
) -> TenantContext:
    """
    Resolve the scope of the request.

    The organization comes from the token's org_id, falling back to
    user_preferences.current_organization_id. The role is re-read from the
    membership so a revoked membership drops back to personal scope.
    """
    org_id = _parse_uuid(payload.get("org_id"))
    if org_id is None:
        preferences = await UserRepository(db).get_preferences(user.id)
        org_id = preferences.current_organization_id if preferences else None

    if org_id is None:
        return TenantContext(user_id=user.id)

    membership = await OrganizationRepository(db).get_membership(org_id, user.id)
    if membership is None:
        logger.warning(f"User {user.id} is not a member of organization {org_id}, using personal scope")
        return TenantContext(user_id=user.id)

    return TenantContext(user_id=user.id, organization_id=org_id, role=membership.role)


async def verify_org_membership(
    org_id: UUID = Path(..., description="Organization ID"),  # noqa: B008
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
) -> OrganizationMember:
    """
    Verify that the current user is a member of the organization.

    Raises 403 Forbidden if the user is not a member.
    """
    membership = await OrganizationRepository(db).get_membership(org_id, user.id)

    if not membership:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this organization",
        )

    return membership


async def require_admin(
    org_id: UUID = Path(..., description="Organization ID"),  # noqa: B008
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
) -> OrganizationMember:
    """Require the admin or owner role in the organization."""
    membership = await verify_org_membership(org_id, user, db)

    if not membership.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin or owner role required",
        )

    return membership


async def require_owner(
    org_id: UUID = Path(..., description="Organization ID"),  # noqa: B008
    user: UserDB = Depends(get_current_user_db),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
) -> OrganizationMember:
    """Require the owner role in the organization."""
    membership = await verify_org_membership(org_id, user, db)

    if not membership.is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Owner role required",
        )

    return membership


async def get_organization_by_id(
    org_id: UUID = Path(..., description="Organization ID"),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
) -> Organization:
    """
    Get organization by ID.

    Raises 404 Not Found if the organization doesn't exist.
    """
    org = await OrganizationRepository(db).get_by_id(org_id)

    if not org:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        )

    return org


# ============================================================
# AI DEPENDENCIES
# [GLOBAL] - LLM used for follow-up drafts
# ============================================================


def get_llm() -> ILLM:
    """LLM for follow-up drafts. Overridden in tests."""
    return create_ollama_llm()
