"""
Follow-up automation rules and their executions.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from .base import Base, TenantOwnedMixin, TimestampMixin, iso
from .schemas import CRM_SCHEMA

EXECUTION_STATUSES = (
    "pending",
    "generating",
    "awaiting_approval",
    "approved",
    "rejected",
    "sent",
    "failed",
    "skipped",
)
IN_FLIGHT_EXECUTION_STATUSES = ("pending", "generating", "awaiting_approval")

DEFAULT_TRIGGER_CONDITIONS: dict = {}
DEFAULT_AUTOMATION_SETTINGS = {
    "auto_generate_draft": True,
    "auto_send": False,
    "require_approval": True,
    "approval_threshold": 0.8,
    "max_attempts": 3,
    "escalation_delay_hours": 24,
}
DEFAULT_AI_PREFERENCES = {
    "tone": "professional",
    "approach": "gentle",
    "max_length": "medium",
    "language": "en",
    "custom_instructions": None,
}
DEFAULT_APPROVAL_WORKFLOW = {
    "approvers": [],
    "require_all": False,
    "timeout_hours": 24,
    "fallback_action": "skip",
}


class FollowupAutomationRule(Base, TimestampMixin, TenantOwnedMixin):
    """
    Trigger conditions plus the actions applied to matching follow-ups.

    The four JSON columns hold partial dicts; missing keys fall back to the
    DEFAULT_* values of this module.
    """

    __tablename__ = "followup_automation_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    trigger_conditions = Column(JSONB, default=dict, nullable=False)
    automation_settings = Column(JSONB, default=dict, nullable=False)
    ai_preferences = Column(JSONB, default=dict, nullable=False)
    approval_workflow = Column(JSONB, default=dict, nullable=False)

    execution_count = Column(Integer, default=0, nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    last_executed_at = Column(DateTime(timezone=True), nullable=True)

    executions = relationship(
        "FollowupAutomationExecution",
        back_populates="rule",
        cascade="all, delete-orphan",
    )

    __table_args__ = ({"schema": CRM_SCHEMA},)

    @property
    def settings(self) -> dict:
        return {**DEFAULT_AUTOMATION_SETTINGS, **(self.automation_settings or {})}

    @property
    def preferences(self) -> dict:
        return {**DEFAULT_AI_PREFERENCES, **(self.ai_preferences or {})}

    @property
    def workflow(self) -> dict:
        return {**DEFAULT_APPROVAL_WORKFLOW, **(self.approval_workflow or {})}

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "trigger_conditions": self.trigger_conditions or {},
            "automation_settings": self.settings,
            "ai_preferences": self.preferences,
            "approval_workflow": self.workflow,
            "execution_count": self.execution_count,
            "success_count": self.success_count,
            "last_executed_at": iso(self.last_executed_at),
            "created_at": iso(self.created_at),
        }


class FollowupAutomationExecution(Base, TimestampMixin, TenantOwnedMixin):
    """One application of a rule to one follow-up."""

    __tablename__ = "followup_automation_executions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    rule_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CRM_SCHEMA}.followup_automation_rules.id", ondelete="CASCADE"),
        nullable=False,
    )
    followup_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CRM_SCHEMA}.email_followups.id", ondelete="CASCADE"),
        nullable=False,
    )

    status = Column(String(20), default="pending", nullable=False)

    draft_subject = Column(String(998), nullable=True)
    draft_body = Column(Text, nullable=True)
    draft_confidence = Column(Float, nullable=True)

    approvals = Column(JSONB, default=list, nullable=False)
    approval_deadline = Column(DateTime(timezone=True), nullable=True)

    error_message = Column(Text, nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)

    rule = relationship("FollowupAutomationRule", back_populates="executions")

    __table_args__ = (
        Index("idx_automation_exec_rule_followup", "rule_id", "followup_id"),
        Index("idx_automation_exec_status", "status"),
        {"schema": CRM_SCHEMA},
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "rule_id": str(self.rule_id),
            "followup_id": str(self.followup_id),
            "user_id": str(self.user_id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "status": self.status,
            "draft_subject": self.draft_subject,
            "draft_body": self.draft_body,
            "draft_confidence": self.draft_confidence,
            "approvals": self.approvals or [],
            "approval_deadline": iso(self.approval_deadline),
            "error_message": self.error_message,
            "executed_at": iso(self.executed_at),
            "created_at": iso(self.created_at),
        }
