"""
Email follow-up tracking: follow-ups, reminders, smart folders, user settings.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import relationship

from .base import Base, TenantOwnedMixin, TimestampMixin, iso
from .schemas import CORE_SCHEMA, CRM_SCHEMA

FOLLOWUP_STATUSES = ("pending", "due", "overdue", "completed", "cancelled")
OPEN_FOLLOWUP_STATUSES = ("pending", "due", "overdue")
FOLLOWUP_PRIORITIES = ("low", "medium", "high", "urgent")
FOLLOWUP_TYPES = ("manual", "auto", "scheduled")

REMINDER_TYPES = ("notification", "email", "dashboard")
REMINDER_STATUSES = ("pending", "sent", "failed", "cancelled")


class EmailFollowup(Base, TimestampMixin, TenantOwnedMixin):
    """
    A sent email awaiting a response.

    follow_up_due_at is original_sent_at + follow_up_days. Status moves
    pending -> due -> overdue with time, and ends in completed or cancelled.
    """

    __tablename__ = "email_followups"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    email_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CRM_SCHEMA}.emails.id", ondelete="SET NULL"),
        nullable=True,
    )

    original_subject = Column(String(998), nullable=False)
    original_recipients = Column(ARRAY(String), default=list, nullable=False)
    original_sent_at = Column(DateTime(timezone=True), nullable=False)

    follow_up_days = Column(Integer, default=3, nullable=False)
    follow_up_due_at = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(20), default="pending", nullable=False)
    priority = Column(String(10), default="medium", nullable=False)
    follow_up_type = Column(String(10), default="manual", nullable=False)

    reminder_count = Column(Integer, default=0, nullable=False)
    last_reminder_at = Column(DateTime(timezone=True), nullable=True)
    response_received_at = Column(DateTime(timezone=True), nullable=True)
    follow_up_sent_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)
    extra_metadata = Column("metadata", JSONB, default=dict, nullable=False)

    reminders = relationship(
        "FollowupReminder",
        back_populates="followup",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_followups_user_status", "user_id", "status"),
        Index("idx_followups_due_at", "follow_up_due_at"),
        Index("idx_followups_email_id", "email_id"),
        {"schema": CRM_SCHEMA},
    )

    def __repr__(self) -> str:
        return f"<EmailFollowup(id='{self.id}', status='{self.status}', due='{self.follow_up_due_at}')>"

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_FOLLOWUP_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "email_id": str(self.email_id) if self.email_id else None,
            "user_id": str(self.user_id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "original_subject": self.original_subject,
            "original_recipients": self.original_recipients or [],
            "original_sent_at": iso(self.original_sent_at),
            "follow_up_days": self.follow_up_days,
            "follow_up_due_at": iso(self.follow_up_due_at),
            "status": self.status,
            "priority": self.priority,
            "follow_up_type": self.follow_up_type,
            "reminder_count": self.reminder_count,
            "last_reminder_at": iso(self.last_reminder_at),
            "response_received_at": iso(self.response_received_at),
            "follow_up_sent_at": iso(self.follow_up_sent_at),
            "notes": self.notes,
            "metadata": self.extra_metadata or {},
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class FollowupReminder(Base, TimestampMixin):
    """A reminder scheduled for a follow-up."""

    __tablename__ = "followup_reminders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    followup_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CRM_SCHEMA}.email_followups.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.users.id", ondelete="CASCADE"),
        nullable=False,
    )

    reminder_type = Column(String(20), default="dashboard", nullable=False)
    reminder_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    extra_metadata = Column("metadata", JSONB, default=dict, nullable=False)

    followup = relationship("EmailFollowup", back_populates="reminders")

    __table_args__ = (
        Index("idx_reminders_status_time", "status", "reminder_time"),
        {"schema": CRM_SCHEMA},
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "followup_id": str(self.followup_id),
            "user_id": str(self.user_id),
            "reminder_type": self.reminder_type,
            "reminder_time": iso(self.reminder_time),
            "status": self.status,
            "title": self.title,
            "message": self.message,
            "sent_at": iso(self.sent_at),
            "metadata": self.extra_metadata or {},
        }


class SmartFolder(Base, TimestampMixin, TenantOwnedMixin):
    """A saved filter over follow-ups."""

    __tablename__ = "followup_smart_folders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(7), default="#3B82F6", nullable=False)
    icon = Column(String(50), default="folder", nullable=False)

    filter_rules = Column(JSONB, default=dict, nullable=False, comment="e.g. {'status': ['due', 'overdue']}")
    sort_order = Column(String(30), default="due_date_asc", nullable=False)

    auto_refresh = Column(Boolean, default=True, nullable=False)
    show_count = Column(Boolean, default=True, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    __table_args__ = ({"schema": CRM_SCHEMA},)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "filter_rules": self.filter_rules or {},
            "sort_order": self.sort_order,
            "auto_refresh": self.auto_refresh,
            "show_count": self.show_count,
            "display_order": self.display_order,
            "is_active": self.is_active,
            "is_default": self.is_default,
            "created_at": iso(self.created_at),
        }


class FollowupSettings(Base, TimestampMixin):
    """Per-user follow-up preferences."""

    __tablename__ = "followup_settings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    auto_followup_enabled = Column(Boolean, default=True, nullable=False)
    default_followup_days = Column(Integer, default=3, nullable=False)
    default_priority = Column(String(10), default="medium", nullable=False)
    max_followups_per_contact = Column(Integer, default=3, nullable=False)
    exclude_replies = Column(Boolean, default=True, nullable=False)
    enable_notifications = Column(Boolean, default=True, nullable=False)

    __table_args__ = ({"schema": CRM_SCHEMA},)

    def to_dict(self) -> dict:
        return {
            "auto_followup_enabled": self.auto_followup_enabled,
            "default_followup_days": self.default_followup_days,
            "default_priority": self.default_priority,
            "max_followups_per_contact": self.max_followups_per_contact,
            "exclude_replies": self.exclude_replies,
            "enable_notifications": self.enable_notifications,
        }
