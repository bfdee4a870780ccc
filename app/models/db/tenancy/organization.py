# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Root tenant entity. Every contact, email account, follow-up and
#              AI record belongs to an organization (or to a single user).
# Tenant-Aware: Yes - this IS the root table of the tenancy model.
# ============================================================================
"""
Organization model - core tenant entity.

Holds identity, branding and subscription state for a tenant.
"""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..base import Base, TimestampMixin, iso
from ..schemas import CORE_SCHEMA


class Organization(Base, TimestampMixin):
    """
    Organization (tenant).

    Attributes:
        id: Unique identifier (UUID)
        slug: URL-friendly unique identifier (e.g., "withcar")
        name: Organization name
        description: Free-text description
        logo_url: Public URL of the uploaded logo
        primary_color / secondary_color / accent_color: Branding colors (#RRGGBB)
        domain: Email domain of the organization (e.g., "withcar.si")
        is_active: Whether the organization can be used
        subscription_tier: Billing tier ("free", "pro", ...)
        subscription_status: Billing status ("active", "past_due", ...)
        max_users: Member quota
        created_by: User that created the organization
    """

    __tablename__ = "organizations"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique organization identifier",
    )

    slug = Column(
        String(50),
        unique=True,
        nullable=False,
        comment="URL-friendly unique identifier",
    )

    name = Column(String(255), nullable=False, comment="Organization name")

    description = Column(Text, nullable=True)

    # Branding
    logo_url = Column(String(500), nullable=True, comment="Public URL of the organization logo")
    primary_color = Column(String(7), nullable=True, comment="Primary brand color (#RRGGBB)")
    secondary_color = Column(String(7), nullable=True, comment="Secondary brand color (#RRGGBB)")
    accent_color = Column(String(7), nullable=True, comment="Accent brand color (#RRGGBB)")

    domain = Column(String(255), nullable=True, comment="Email domain used by the organization")

    # Status and subscription
    is_active = Column(Boolean, default=True, nullable=False)
    subscription_tier = Column(String(20), default="free", nullable=False)
    subscription_status = Column(String(20), default="active", nullable=False)

    max_users = Column(
        Integer,
        default=10,
        nullable=False,
        comment="Maximum members allowed in the organization",
    )

    created_by = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.users.id", ondelete="SET NULL"),
        nullable=True,
    )

    members = relationship(
        "OrganizationMember",
        back_populates="organization",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_organizations_slug", slug),
        Index("idx_organizations_is_active", is_active),
        {"schema": CORE_SCHEMA},
    )

    def __repr__(self) -> str:
        return f"<Organization(slug='{self.slug}', name='{self.name}')>"

    @property
    def branding(self) -> dict:
        return {
            "logo_url": self.logo_url,
            "primary_color": self.primary_color,
            "secondary_color": self.secondary_color,
            "accent_color": self.accent_color,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": str(self.id),
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            **self.branding,
            "domain": self.domain,
            "is_active": self.is_active,
            "subscription_tier": self.subscription_tier,
            "subscription_status": self.subscription_status,
            "max_users": self.max_users,
            "created_by": str(self.created_by) if self.created_by else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
