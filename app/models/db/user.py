"""
User authentication models for PostgreSQL persistence
"""

import uuid

from sqlalchemy import Boolean, Column, Index, String
from sqlalchemy.dialects.postgresql import ARRAY, UUID

from .base import Base, TimestampMixin, iso
from .schemas import CORE_SCHEMA


class UserDB(Base, TimestampMixin):
    """
    Application user.

    Attributes:
        id: Unique user UUID
        username: Unique login name
        email: Unique email address
        password_hash: bcrypt hash (null for accounts created through Google)
        full_name: Display name
        auth_provider: "password" or "google"
        disabled: Whether the account is disabled
        scopes: Global permission scopes
    """

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=True)

    full_name = Column(String(255), nullable=True)
    auth_provider = Column(String(20), default="password", nullable=False)

    disabled = Column(Boolean, default=False, nullable=False)
    scopes = Column(ARRAY(String), default=list, nullable=False)

    __table_args__ = (
        Index("idx_users_username", username),
        Index("idx_users_email", email),
        Index("idx_users_disabled", disabled),
        {"schema": CORE_SCHEMA},
    )

    def __repr__(self):
        return f"<UserDB(id='{self.id}', username='{self.username}', email='{self.email}')>"

    def to_dict(self) -> dict:
        """Serialize without password_hash."""
        return {
            "id": str(self.id),
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "auth_provider": self.auth_provider,
            "disabled": self.disabled,
            "scopes": self.scopes or [],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
