"""
Tests for organization membership rules.

Repositories are mocks; no database is needed.
"""

import uuid
from unittest.mock import AsyncMock

import pytest

from app.models.db.tenancy import Organization, OrganizationMember
from app.models.db.user import UserDB
from app.services.organization_service import (
    InviteeNotFoundError,
    MemberNotFoundError,
    MembershipPermissionError,
    MembershipRuleError,
    OrganizationService,
)


def make_member(org, role="member", user_id=None):
    return OrganizationMember(id=uuid.uuid4(), organization_id=org.id, user_id=user_id or uuid.uuid4(), role=role)


@pytest.fixture
def organization():
    return Organization(id=uuid.uuid4(), slug="acme", name="Acme", max_users=3)


@pytest.fixture
def owner(organization):
    return make_member(organization, role="owner")


@pytest.fixture
def admin(organization):
    return make_member(organization, role="admin")


@pytest.fixture
def repository():
    repository = AsyncMock()
    repository.count_members = AsyncMock(return_value=1)
    repository.get_membership = AsyncMock(return_value=None)
    repository.add_member = AsyncMock(
        side_effect=lambda org_id, user_id, role, invited_by: OrganizationMember(
            organization_id=org_id, user_id=user_id, role=role, invited_by=invited_by
        )
    )
    return repository


@pytest.fixture
def users():
    return AsyncMock()


@pytest.fixture
def service(repository, users):
    return OrganizationService(repository, users)


class TestInviteMember:
    async def test_adds_existing_user(self, service, repository, users, organization, owner):
        invitee = UserDB(id=uuid.uuid4(), username="ana", email="ana@acme.com")
        users.get_by_email = AsyncMock(return_value=invitee)

        member = await service.invite_member(organization, "ana@acme.com", "admin", owner.user_id)

        assert member.user_id == invitee.id
        assert member.role == "admin"
        assert member.invited_by == owner.user_id
        repository.add_member.assert_awaited_once_with(organization.id, invitee.id, "admin", owner.user_id)

    async def test_quota_reached(self, service, repository, users, organization, owner):
        repository.count_members = AsyncMock(return_value=organization.max_users)

        with pytest.raises(MembershipRuleError, match="User limit reached"):
            await service.invite_member(organization, "ana@acme.com", "member", owner.user_id)
        users.get_by_email.assert_not_awaited()
        repository.add_member.assert_not_awaited()

    async def test_unknown_email(self, service, users, organization, owner):
        users.get_by_email = AsyncMock(return_value=None)

        with pytest.raises(InviteeNotFoundError) as exc_info:
            await service.invite_member(organization, "ghost@acme.com", "member", owner.user_id)
        assert exc_info.value.status_code == 404

    async def test_already_member(self, service, repository, users, organization, owner):
        invitee = UserDB(id=uuid.uuid4(), username="ana", email="ana@acme.com")
        users.get_by_email = AsyncMock(return_value=invitee)
        repository.get_membership = AsyncMock(return_value=make_member(organization, user_id=invitee.id))

        with pytest.raises(MembershipRuleError, match="already a member"):
            await service.invite_member(organization, "ana@acme.com", "member", owner.user_id)

    @pytest.mark.parametrize("role", ["owner", "superuser"])
    async def test_only_admin_or_member(self, service, organization, owner, role):
        with pytest.raises(MembershipRuleError):
            await service.invite_member(organization, "ana@acme.com", role, owner.user_id)


class TestChangeRole:
    async def test_owner_changes_member_role(self, service, repository, users, organization, owner):
        member = make_member(organization)
        repository.get_membership = AsyncMock(return_value=member)
        users.get_by_id = AsyncMock(return_value=UserDB(id=member.user_id, username="bo", email="bo@acme.com"))

        result = await service.change_role(organization, owner, member.user_id, "admin")

        assert member.role == "admin"
        repository.save_member.assert_awaited_once_with(member)
        assert result["role"] == "admin"
        assert result["email"] == "bo@acme.com"

    async def test_admin_cannot_change_roles(self, service, repository, organization, admin):
        with pytest.raises(MembershipPermissionError) as exc_info:
            await service.change_role(organization, admin, uuid.uuid4(), "member")
        assert exc_info.value.status_code == 403
        repository.save_member.assert_not_awaited()

    async def test_not_own_role(self, service, organization, owner):
        with pytest.raises(MembershipRuleError, match="your own role"):
            await service.change_role(organization, owner, owner.user_id, "admin")

    async def test_owner_role_cannot_be_assigned(self, service, repository, organization, owner):
        with pytest.raises(MembershipRuleError, match="owner role"):
            await service.change_role(organization, owner, uuid.uuid4(), "owner")
        repository.save_member.assert_not_awaited()

    async def test_unknown_member(self, service, organization, owner):
        with pytest.raises(MemberNotFoundError):
            await service.change_role(organization, owner, uuid.uuid4(), "member")


class TestRemoveMember:
    async def test_owner_is_never_removed(self, service, repository, organization, owner, admin):
        repository.get_membership = AsyncMock(return_value=owner)

        for acting in (owner, admin):
            with pytest.raises(MembershipRuleError, match="owner cannot be removed"):
                await service.remove_member(organization, acting, owner.user_id)
        repository.remove_member.assert_not_awaited()

    async def test_only_owner_removes_admins(self, service, repository, organization, admin):
        other_admin = make_member(organization, role="admin")
        repository.get_membership = AsyncMock(return_value=other_admin)

        with pytest.raises(MembershipPermissionError):
            await service.remove_member(organization, admin, other_admin.user_id)
        repository.remove_member.assert_not_awaited()

    async def test_owner_removes_admin(self, service, repository, organization, owner, admin):
        repository.get_membership = AsyncMock(return_value=admin)

        await service.remove_member(organization, owner, admin.user_id)

        repository.remove_member.assert_awaited_once_with(admin)

    async def test_admin_removes_member(self, service, repository, organization, admin):
        member = make_member(organization)
        repository.get_membership = AsyncMock(return_value=member)

        await service.remove_member(organization, admin, member.user_id)

        repository.remove_member.assert_awaited_once_with(member)


class TestCreateOrganization:
    async def test_slug_gets_suffix_when_taken(self, service, repository, users):
        owner = UserDB(id=uuid.uuid4(), username="ana", email="ana@acme.com")
        repository.slug_exists = AsyncMock(side_effect=[True, True, False])
        repository.create_with_owner = AsyncMock(side_effect=lambda org, owner_id: org)

        organization = await service.create_organization(owner, {"name": "Acme Corp"})

        assert organization.slug == "acme-corp-2"
        assert organization.created_by == owner.id
        repository.create_with_owner.assert_awaited_once_with(organization, owner.id)
        users.upsert_preferences.assert_awaited_once_with(owner.id, current_organization_id=organization.id)
