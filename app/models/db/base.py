"""
Base models and mixins for the database
"""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, declared_attr

from .schemas import CORE_SCHEMA

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware UTC now, shared by column defaults and services."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def iso(value: datetime | None) -> str | None:
    """Serialize an optional datetime for to_dict() payloads."""
    return value.isoformat() if value else None


class TimestampMixin:
    """Mixin adding created_at / updated_at columns."""

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class TenantOwnedMixin:
    """
    Mixin for rows owned by a user and, optionally, an organization.

    Rows with organization_id NULL are personal to user_id.
    """

    @declared_attr
    def user_id(cls):
        return Column(
            UUID(as_uuid=True),
            ForeignKey(f"{CORE_SCHEMA}.users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    @declared_attr
    def organization_id(cls):
        return Column(
            UUID(as_uuid=True),
            ForeignKey(f"{CORE_SCHEMA}.organizations.id", ondelete="CASCADE"),
            nullable=True,
            index=True,
        )
