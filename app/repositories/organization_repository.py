# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Persistence for organizations and their memberships.
# Tenant-Aware: Yes - defines who belongs to which tenant.
# ============================================================================
"""
Organization Repository - organizations, members and per-organization counts.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.db.crm import Contact
from app.models.db.email import EmailAccount
from app.models.db.followups import OPEN_FOLLOWUP_STATUSES, EmailFollowup
from app.models.db.tenancy import Organization, OrganizationMember
from app.models.db.user import UserDB

logger = logging.getLogger(__name__)


class OrganizationRepository:
    """Async repository for core.organizations and core.organization_members."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # =========================================================================
    # Organizations
    # =========================================================================

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        result = await self._db.execute(select(Organization).where(Organization.id == org_id))
        return result.scalar_one_or_none()

    async def slug_exists(self, slug: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(Organization.id).where(Organization.slug == slug)
        if exclude_id:
            stmt = stmt.where(Organization.id != exclude_id)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_memberships_for_user(self, user_id: UUID) -> list[OrganizationMember]:
        """Memberships of a user with their organization eagerly loaded."""
        stmt = (
            select(OrganizationMember)
            .where(OrganizationMember.user_id == user_id)
            .options(selectinload(OrganizationMember.organization))
            .order_by(OrganizationMember.joined_at)
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def create_with_owner(self, organization: Organization, owner_id: UUID) -> Organization:
        """Insert an organization and make owner_id its owner."""
        self._db.add(organization)
        await self._db.flush()

        self._db.add(
            OrganizationMember(
                organization_id=organization.id,
                user_id=owner_id,
                role="owner",
            )
        )
        await self._db.commit()
        await self._db.refresh(organization)

        logger.info(f"Organization created: {organization.slug} (owner: {owner_id})")
        return organization

    async def save(self, organization: Organization) -> Organization:
        await self._db.commit()
        await self._db.refresh(organization)
        return organization

    async def delete(self, organization: Organization) -> None:
        await self._db.delete(organization)
        await self._db.commit()

    # =========================================================================
    # Members
    # =========================================================================

    async def get_membership(self, org_id: UUID, user_id: UUID) -> OrganizationMember | None:
        stmt = select(OrganizationMember).where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.user_id == user_id,
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_members(self, org_id: UUID) -> list[tuple[OrganizationMember, UserDB]]:
        """Members of an organization with their user rows, owners first."""
        stmt = (
            select(OrganizationMember, UserDB)
            .join(UserDB, UserDB.id == OrganizationMember.user_id)
            .where(OrganizationMember.organization_id == org_id)
            .order_by(OrganizationMember.joined_at)
        )
        result = await self._db.execute(stmt)
        rows = [(member, user) for member, user in result.all()]
        return sorted(rows, key=lambda row: row[0].role != "owner")

    async def count_members(self, org_id: UUID) -> int:
        stmt = select(func.count()).select_from(OrganizationMember).where(OrganizationMember.organization_id == org_id)
        result = await self._db.execute(stmt)
        return result.scalar_one()

    async def add_member(self, org_id: UUID, user_id: UUID, role: str, invited_by: UUID) -> OrganizationMember:
        member = OrganizationMember(
            organization_id=org_id,
            user_id=user_id,
            role=role,
            invited_by=invited_by,
        )
        self._db.add(member)
        await self._db.commit()
        await self._db.refresh(member)
        return member

    async def save_member(self, member: OrganizationMember) -> OrganizationMember:
        await self._db.commit()
        await self._db.refresh(member)
        return member

    async def remove_member(self, member: OrganizationMember) -> None:
        await self._db.delete(member)
        await self._db.commit()

    # =========================================================================
    # Stats
    # =========================================================================

    async def _count(self, model, *criteria) -> int:
        stmt = select(func.count()).select_from(model).where(*criteria)
        result = await self._db.execute(stmt)
        return result.scalar_one()

    async def get_stats(self, org_id: UUID) -> dict[str, int]:
        return {
            "members": await self.count_members(org_id),
            "contacts": await self._count(Contact, Contact.organization_id == org_id),
            "open_followups": await self._count(
                EmailFollowup,
                EmailFollowup.organization_id == org_id,
                EmailFollowup.status.in_(OPEN_FOLLOWUP_STATUSES),
            ),
            "email_accounts": await self._count(EmailAccount, EmailAccount.organization_id == org_id),
        }
