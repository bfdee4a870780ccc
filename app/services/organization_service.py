# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Organization lifecycle, branding, logo and team membership.
# Tenant-Aware: Yes - decides who belongs to which tenant and with what role.
# ============================================================================
"""
Organization Service - business rules behind the organization and member routes.

Membership rules:
- the creator of an organization becomes its owner
- admins invite existing users as admin or member, within max_users
- only the owner changes roles; nobody changes their own role or makes an owner
- the owner is never removed; only the owner removes admins
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings
from app.models.db.tenancy import Organization, OrganizationMember
from app.models.db.user import UserDB
from app.repositories.organization_repository import OrganizationRepository
from app.repositories.user_repository import UserRepository
from app.services import logo_storage
from app.utils.slug import generate_slug, with_suffix

logger = logging.getLogger(__name__)

MAX_SLUG_ATTEMPTS = 100


# ============================================================
# Exceptions
# ============================================================


class OrganizationServiceError(Exception):
    """Base error; status_code is the HTTP status the API answers with."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MemberNotFoundError(OrganizationServiceError):
    status_code = 404


class InviteeNotFoundError(OrganizationServiceError):
    status_code = 404


class MembershipRuleError(OrganizationServiceError):
    status_code = 400


class MembershipPermissionError(OrganizationServiceError):
    status_code = 403


# ============================================================
# Service
# ============================================================


class OrganizationService:
    def __init__(self, repository: OrganizationRepository, user_repository: UserRepository):
        self._repository = repository
        self._users = user_repository

    @classmethod
    def with_session(cls, db: AsyncSession) -> "OrganizationService":
        return cls(OrganizationRepository(db), UserRepository(db))

    # ----------------------------------------------------------------
    # Organizations
    # ----------------------------------------------------------------

    async def list_for_user(self, user_id: UUID) -> list[dict[str, Any]]:
        """Organizations of a user, each with the user's role in it."""
        memberships = await self._repository.list_memberships_for_user(user_id)
        return [
            {**membership.organization.to_dict(), "role": membership.role}
            for membership in memberships
            if membership.organization is not None
        ]

    async def unique_slug(self, base: str, exclude_id: UUID | None = None) -> str:
        slug = base
        for counter in range(1, MAX_SLUG_ATTEMPTS + 1):
            if not await self._repository.slug_exists(slug, exclude_id=exclude_id):
                return slug
            slug = with_suffix(base, counter)
        raise MembershipRuleError(f"Could not find a free slug for '{base}'")

    async def create_organization(self, owner: UserDB, data: dict[str, Any]) -> Organization:
        """
        Create an organization owned by `owner` and select it for them.

        The slug is derived from the name when absent and made unique with a
        numeric suffix.
        """
        fields = dict(data)
        slug = await self.unique_slug(fields.pop("slug", None) or generate_slug(fields["name"]))

        organization = Organization(slug=slug, created_by=owner.id, **fields)
        organization = await self._repository.create_with_owner(organization, owner.id)
        await self._users.upsert_preferences(owner.id, current_organization_id=organization.id)
        return organization

    async def update_organization(self, organization: Organization, data: dict[str, Any]) -> Organization:
        if data.get("slug") and data["slug"] != organization.slug:
            data["slug"] = await self.unique_slug(data["slug"], exclude_id=organization.id)

        for key, value in data.items():
            setattr(organization, key, value)
        return await self._repository.save(organization)

    async def delete_organization(self, organization: Organization) -> None:
        logger.info(f"Deleting organization {organization.slug}")
        await self._repository.delete(organization)

    async def switch_organization(self, user: UserDB, organization: Organization) -> None:
        await self._users.upsert_preferences(user.id, current_organization_id=organization.id)
        logger.info(f"User {user.username} switched to organization {organization.slug}")

    async def get_stats(self, organization: Organization) -> dict[str, Any]:
        counts = await self._repository.get_stats(organization.id)
        return {"organization_id": str(organization.id), "max_users": organization.max_users, **counts}

    # ----------------------------------------------------------------
    # Branding
    # ----------------------------------------------------------------

    async def update_branding(self, organization: Organization, data: dict[str, Any]) -> dict[str, Any]:
        for key in ("logo_url", "primary_color", "secondary_color", "accent_color"):
            if key in data:
                setattr(organization, key, data[key])
        organization = await self._repository.save(organization)
        return organization.branding

    async def upload_logo(self, organization: Organization, content_type: str | None, data: bytes | None) -> str:
        """
        Store a new logo and point logo_url at the logo endpoint.

        Raises:
            LogoValidationError: If the upload is rejected
        """
        logo_storage.save_logo(organization.id, content_type, data)
        organization.logo_url = f"{get_settings().API_V1_STR}/organizations/{organization.id}/logo"
        await self._repository.save(organization)
        return organization.logo_url

    # ----------------------------------------------------------------
    # Members
    # ----------------------------------------------------------------

    @staticmethod
    def member_to_dict(member: OrganizationMember, user: UserDB) -> dict[str, Any]:
        return {
            **member.to_dict(),
            "username": user.username,
            "email": user.email,
            "full_name": user.full_name,
        }

    async def list_members(self, organization: Organization) -> list[dict[str, Any]]:
        rows = await self._repository.list_members(organization.id)
        return [self.member_to_dict(member, user) for member, user in rows]

    async def get_member(self, organization: Organization, user_id: UUID) -> dict[str, Any]:
        member = await self._require_member(organization.id, user_id)
        user = await self._users.get_by_id(user_id)
        return self.member_to_dict(member, user)

    async def invite_member(
        self,
        organization: Organization,
        email: str,
        role: str,
        invited_by: UUID,
    ) -> OrganizationMember:
        """
        Add an existing user to the organization.

        Raises:
            MembershipRuleError: Quota reached, bad role or already a member
            InviteeNotFoundError: No user registered with that email
        """
        if role not in ("admin", "member"):
            raise MembershipRuleError("Invited users can only be admin or member")

        if await self._repository.count_members(organization.id) >= organization.max_users:
            raise MembershipRuleError(f"User limit reached ({organization.max_users})")

        user = await self._users.get_by_email(email)
        if user is None:
            raise InviteeNotFoundError(f"No user registered with email {email}; they must sign up first")

        if await self._repository.get_membership(organization.id, user.id):
            raise MembershipRuleError("User is already a member of this organization")

        member = await self._repository.add_member(organization.id, user.id, role, invited_by)
        logger.info(f"User {user.email} added to {organization.slug} as {role}")
        return member

    async def change_role(
        self,
        organization: Organization,
        acting: OrganizationMember,
        user_id: UUID,
        role: str,
    ) -> dict[str, Any]:
        if not acting.is_owner:
            raise MembershipPermissionError("Only the owner can change roles")
        if user_id == acting.user_id:
            raise MembershipRuleError("You cannot change your own role")
        if role == "owner":
            raise MembershipRuleError("The owner role cannot be assigned")
        if role not in ("admin", "member"):
            raise MembershipRuleError(f"Invalid role: {role}")

        member = await self._require_member(organization.id, user_id)
        member.role = role
        await self._repository.save_member(member)
        return await self.get_member(organization, user_id)

    async def remove_member(self, organization: Organization, acting: OrganizationMember, user_id: UUID) -> None:
        member = await self._require_member(organization.id, user_id)

        if member.is_owner:
            raise MembershipRuleError("The organization owner cannot be removed")
        if member.role == "admin" and not acting.is_owner:
            raise MembershipPermissionError("Only the owner can remove admins")

        await self._repository.remove_member(member)
        logger.info(f"User {user_id} removed from {organization.slug}")

    async def _require_member(self, org_id: UUID, user_id: UUID) -> OrganizationMember:
        member = await self._repository.get_membership(org_id, user_id)
        if member is None:
            raise MemberNotFoundError("User is not a member of this organization")
        return member
