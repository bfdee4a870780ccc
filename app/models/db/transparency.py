"""
AI transparency: agent activity log, reasoning steps, settings and memories.
"""

import uuid

from sqlalchemy import Column, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from .base import Base, TenantOwnedMixin, TimestampMixin, iso
from .schemas import AI_SCHEMA, CORE_SCHEMA, CRM_SCHEMA


class AgentActivity(Base, TimestampMixin, TenantOwnedMixin):
    """Something an AI agent did."""

    __tablename__ = "ai_agent_activities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    agent_id = Column(String(100), nullable=False, comment="Agent identifier, e.g. 'followup-drafter'")
    activity_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    related_entity_type = Column(String(50), nullable=True)
    related_entity_id = Column(UUID(as_uuid=True), nullable=True)
    extra_metadata = Column("metadata", JSONB, default=dict, nullable=False)

    thoughts = relationship(
        "AgentThought",
        back_populates="activity",
        cascade="all, delete-orphan",
        order_by="AgentThought.thought_step",
    )

    __table_args__ = (
        Index("idx_ai_activities_agent_created", "agent_id", "created_at"),
        {"schema": AI_SCHEMA},
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "agent_id": self.agent_id,
            "activity_type": self.activity_type,
            "description": self.description,
            "related_entity_type": self.related_entity_type,
            "related_entity_id": str(self.related_entity_id) if self.related_entity_id else None,
            "metadata": self.extra_metadata or {},
            "created_at": iso(self.created_at),
        }


class AgentThought(Base, TimestampMixin):
    """A reasoning step recorded for an activity."""

    __tablename__ = "ai_agent_thoughts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    activity_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{AI_SCHEMA}.ai_agent_activities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    thought_step = Column(Integer, nullable=False)
    reasoning = Column(Text, nullable=False)
    alternatives = Column(JSONB, default=list, nullable=False)
    confidence = Column(Float, nullable=True)

    activity = relationship("AgentActivity", back_populates="thoughts")

    __table_args__ = ({"schema": AI_SCHEMA},)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "activity_id": str(self.activity_id),
            "thought_step": self.thought_step,
            "reasoning": self.reasoning,
            "alternatives": self.alternatives or [],
            "confidence": self.confidence,
            "created_at": iso(self.created_at),
        }


class AgentSetting(Base, TimestampMixin):
    """A key/value setting scoped to an agent within an organization or user."""

    __tablename__ = "ai_agent_settings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    agent_id = Column(String(100), nullable=True)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.users.id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CORE_SCHEMA}.organizations.id", ondelete="CASCADE"),
        nullable=True,
    )
    setting_key = Column(String(100), nullable=False)
    setting_value = Column(JSONB, nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", "agent_id", "setting_key", name="uq_ai_agent_setting"),
        {"schema": AI_SCHEMA},
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "agent_id": self.agent_id,
            "setting_key": self.setting_key,
            "setting_value": self.setting_value,
            "updated_at": iso(self.updated_at),
        }


class AIMemory(Base, TimestampMixin, TenantOwnedMixin):
    """A fact the AI retains about a contact or the organization."""

    __tablename__ = "ai_memories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    memory_type = Column(String(50), nullable=False)
    content = Column(Text, nullable=False)
    contact_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{CRM_SCHEMA}.contacts.id", ondelete="SET NULL"),
        nullable=True,
    )
    importance = Column(Integer, default=5, nullable=False, comment="1 (trivial) to 10 (critical)")
    extra_metadata = Column("metadata", JSONB, default=dict, nullable=False)

    __table_args__ = (
        Index("idx_ai_memories_type", "memory_type"),
        {"schema": AI_SCHEMA},
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "memory_type": self.memory_type,
            "content": self.content,
            "contact_id": str(self.contact_id) if self.contact_id else None,
            "importance": self.importance,
            "metadata": self.extra_metadata or {},
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
