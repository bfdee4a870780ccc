"""
OrganizationMember model - user membership in organizations.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..base import Base, TimestampMixin, iso, utcnow
from ..schemas import CORE_SCHEMA

MEMBER_ROLES = ("owner", "admin", "member")


class OrganizationMember(Base, TimestampMixin):
    """
    Membership of a user in an organization.

    Attributes:
        id: Unique identifier
        organization_id: FK to organizations
        user_id: FK to users
        role: "owner", "admin" or "member"
        invited_by: User who added this member (null for the creator)
        joined_at: When the membership was created
    """

    __tablename__ = "organization_members"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique membership identifier",
    )

    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.organizations.id", ondelete="CASCADE"),
        nullable=False,
        comment="Organization this membership belongs to",
    )

    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Member user",
    )

    role = Column(
        String(20),
        default="member",
        nullable=False,
        comment="Member role: 'owner', 'admin', 'member'",
    )

    invited_by = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.users.id", ondelete="SET NULL"),
        nullable=True,
    )

    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    organization = relationship(
        "Organization",
        back_populates="members",
    )

    user = relationship(
        "UserDB",
        foreign_keys=[user_id],
        backref="organization_memberships",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_org_member"),
        Index("idx_org_members_org_id", organization_id),
        Index("idx_org_members_user_id", user_id),
        {"schema": CORE_SCHEMA},
    )

    def __repr__(self) -> str:
        return f"<OrganizationMember(org_id='{self.organization_id}', user_id='{self.user_id}', role='{self.role}')>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "organization_id": str(self.organization_id),
            "user_id": str(self.user_id),
            "role": self.role,
            "is_owner": self.is_owner,
            "invited_by": str(self.invited_by) if self.invited_by else None,
            "joined_at": iso(self.joined_at),
        }

    @property
    def is_owner(self) -> bool:
        return bool(self.role == "owner")

    @property
    def is_admin(self) -> bool:
        """Admins and owners can manage the organization."""
        return self.role in ("owner", "admin")
