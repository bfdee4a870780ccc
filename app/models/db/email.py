"""
Email accounts and stored email messages.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, UUID

from .base import Base, TenantOwnedMixin, TimestampMixin, iso
from .schemas import CRM_SCHEMA

PROVIDER_TYPES = ("google", "microsoft", "imap")


class EmailAccount(Base, TimestampMixin, TenantOwnedMixin):
    """
    Mailbox connected by a user.

    IMAP passwords are stored pgcrypto-encrypted in password_encrypted and
    are never serialized.
    """

    __tablename__ = "email_accounts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    email = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    provider_type = Column(String(20), nullable=False, comment="'google', 'microsoft' or 'imap'")

    imap_host = Column(String(255), nullable=True)
    imap_port = Column(Integer, nullable=True)
    imap_security = Column(String(10), default="ssl", nullable=True)
    smtp_host = Column(String(255), nullable=True)
    smtp_port = Column(Integer, nullable=True)
    smtp_security = Column(String(10), default="starttls", nullable=True)
    username = Column(String(255), nullable=True)
    password_encrypted = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    setup_completed = Column(Boolean, default=False, nullable=False)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_full_sync_at = Column(DateTime(timezone=True), nullable=True)
    sync_error = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_email_accounts_user_email", "user_id", "email", unique=True),
        {"schema": CRM_SCHEMA},
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "email": self.email,
            "display_name": self.display_name,
            "provider_type": self.provider_type,
            "imap_host": self.imap_host,
            "imap_port": self.imap_port,
            "imap_security": self.imap_security,
            "smtp_host": self.smtp_host,
            "smtp_port": self.smtp_port,
            "smtp_security": self.smtp_security,
            "username": self.username,
            "has_password": bool(self.password_encrypted),
            "is_active": self.is_active,
            "setup_completed": self.setup_completed,
            "last_sync_at": iso(self.last_sync_at),
            "last_full_sync_at": iso(self.last_full_sync_at),
            "sync_error": self.sync_error,
            "created_at": iso(self.created_at),
        }


class Email(Base, TimestampMixin, TenantOwnedMixin):
    """A sent or received message recorded for follow-up tracking."""

    __tablename__ = "emails"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    email_account_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CRM_SCHEMA}.email_accounts.id", ondelete="SET NULL"),
        nullable=True,
    )

    message_id = Column(String(500), nullable=True, comment="RFC 5322 Message-ID")
    thread_id = Column(String(500), nullable=True)
    in_reply_to = Column(String(500), nullable=True)

    direction = Column(String(10), nullable=False, comment="'sent' or 'received'")
    subject = Column(String(998), nullable=False, default="")
    sender = Column(String(255), nullable=False)
    recipients = Column(ARRAY(String), default=list, nullable=False)
    body = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_emails_thread_id", "thread_id"),
        Index("idx_emails_message_id", "message_id"),
        {"schema": CRM_SCHEMA},
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "email_account_id": str(self.email_account_id) if self.email_account_id else None,
            "message_id": self.message_id,
            "thread_id": self.thread_id,
            "in_reply_to": self.in_reply_to,
            "direction": self.direction,
            "subject": self.subject,
            "sender": self.sender,
            "recipients": self.recipients or [],
            "sent_at": iso(self.sent_at),
        }
