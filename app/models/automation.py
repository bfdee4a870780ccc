"""
Pydantic models for the JSON columns of automation rules.

Every field is optional: rules store partial dicts and missing keys fall back
to the DEFAULT_* values in app.models.db.automation.
"""

import re
import uuid
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.followups import Approach, DraftLength, Tone

Priority = Literal["low", "medium", "high", "urgent"]
FollowupStatus = Literal["pending", "due", "overdue", "completed", "cancelled"]
Weekday = Annotated[int, Field(ge=0, le=6)]


class RuleSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def to_json(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class TriggerConditions(RuleSection):
    days_overdue: Optional[int] = Field(None, ge=0)
    priority_levels: Optional[List[Priority]] = None
    status_types: Optional[List[FollowupStatus]] = None
    recipient_patterns: Optional[List[str]] = None
    time_of_day: Optional[str] = Field(None, pattern=r"^([01]?\d|2[0-3]):[0-5]\d$")
    days_of_week: Optional[List[Weekday]] = None  # 0 = Sunday

    @field_validator("recipient_patterns")
    @classmethod
    def compile_patterns(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        for pattern in value or []:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid recipient pattern '{pattern}': {e}") from e
        return value


class AutomationSettings(RuleSection):
    auto_generate_draft: Optional[bool] = None
    auto_send: Optional[bool] = None
    require_approval: Optional[bool] = None
    approval_threshold: Optional[float] = Field(None, ge=0, le=1)
    max_attempts: Optional[int] = Field(None, ge=1)
    escalation_delay_hours: Optional[int] = Field(None, ge=0)


class AIPreferences(RuleSection):
    tone: Optional[Tone] = None
    approach: Optional[Approach] = None
    max_length: Optional[DraftLength] = None
    language: Optional[str] = None
    custom_instructions: Optional[str] = None


class ApprovalWorkflow(RuleSection):
    approvers: Optional[List[uuid.UUID]] = None
    require_all: Optional[bool] = None
    timeout_hours: Optional[int] = Field(None, ge=1)
    fallback_action: Optional[Literal["skip", "send"]] = None


RULE_SECTIONS: dict[str, type[RuleSection]] = {
    "trigger_conditions": TriggerConditions,
    "automation_settings": AutomationSettings,
    "ai_preferences": AIPreferences,
    "approval_workflow": ApprovalWorkflow,
}
