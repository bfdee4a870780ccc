"""
Pydantic models for follow-up draft generation
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Tone = Literal["professional", "friendly", "urgent", "casual"]
Approach = Literal["gentle", "direct", "value-add", "alternative"]
DraftLength = Literal["short", "medium", "long"]


class DraftOriginalEmail(BaseModel):
    """The email being followed up"""

    subject: str
    content: str = ""
    recipients: List[str] = Field(default_factory=list)
    sent_at: datetime


class ContactContext(BaseModel):
    """What is known about the recipient"""

    name: Optional[str] = None
    company: Optional[str] = None
    previous_interactions: Optional[int] = None
    last_response_time: Optional[float] = None  # hours
    communication_style: Optional[str] = None


class HistoryEntry(BaseModel):
    subject: str
    content: str = ""
    date: datetime
    direction: Literal["sent", "received"]


class FollowupDraftContext(BaseModel):
    """Input of a draft generation"""

    followup_id: Optional[str] = None
    original_email: DraftOriginalEmail
    follow_up_reason: str = "No response received"
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    days_since_original: int = 0
    conversation_history: List[HistoryEntry] = Field(default_factory=list)
    contact_context: Optional[ContactContext] = None


class FollowupDraftOptions(BaseModel):
    tone: Tone = "professional"
    approach: Approach = "gentle"
    max_length: DraftLength = "medium"
    language: str = "English"
    custom_instructions: Optional[str] = None


class DraftAlternative(BaseModel):
    subject: str
    body: str
    tone: Optional[str] = None
    approach: Optional[str] = None


class FollowupDraft(BaseModel):
    """Generated draft; fallback is True when it comes from the built-in template"""

    subject: str
    body: str
    tone: str
    approach: str
    confidence: float = 0.8
    reasoning: str = ""
    alternatives: List[DraftAlternative] = Field(default_factory=list)
    context_used: List[str] = Field(default_factory=list)
    model: Optional[str] = None
    fallback: bool = False


class FollowupTemplate(BaseModel):
    name: str
    description: str
    tone: str
    approach: str
    use_case: str
