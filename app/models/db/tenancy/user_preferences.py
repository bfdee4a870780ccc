"""
UserPreferences model - per-user settings, including the active organization.
"""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from ..base import Base, TimestampMixin, iso
from ..schemas import CORE_SCHEMA


class UserPreferences(Base, TimestampMixin):
    """
    One row per user.

    current_organization_id is the organization used when a token carries no
    org_id (e.g. right after login).
    """

    __tablename__ = "user_preferences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    current_organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.organizations.id", ondelete="SET NULL"),
        nullable=True,
        comment="Organization selected by the user",
    )

    theme = Column(String(20), default="system", nullable=False)
    timezone = Column(String(64), default="UTC", nullable=False)
    language = Column(String(10), default="en", nullable=False)
    email_notifications = Column(Boolean, default=True, nullable=False)

    __table_args__ = ({"schema": CORE_SCHEMA},)

    def to_dict(self) -> dict:
        return {
            "user_id": str(self.user_id),
            "current_organization_id": str(self.current_organization_id) if self.current_organization_id else None,
            "theme": self.theme,
            "timezone": self.timezone,
            "language": self.language,
            "email_notifications": self.email_notifications,
            "updated_at": iso(self.updated_at),
        }
