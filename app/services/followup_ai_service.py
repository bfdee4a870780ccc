"""
AI follow-up drafts.

Builds the prompts for a follow-up email, asks the LLM for a JSON draft and
falls back to a fixed template when the model is unavailable or answers
with something that cannot be parsed.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import ValidationError

from app.config.settings import get_settings
from app.core.interfaces.llm import ILLM, LLMError
from app.models.db.email import Email
from app.models.db.followups import EmailFollowup
from app.models.followups import (
    DraftAlternative,
    DraftOriginalEmail,
    FollowupDraft,
    FollowupDraftContext,
    FollowupDraftOptions,
    FollowupTemplate,
)
from app.repositories.transparency_repository import TransparencyRepository
from app.utils import extract_json_safely

logger = logging.getLogger(__name__)

AGENT_ID = "followup_ai"
FALLBACK_CONFIDENCE = 0.5


def draft_context_for(
    followup: EmailFollowup,
    now: datetime,
    tracked_email: Optional[Email] = None,
) -> FollowupDraftContext:
    """Draft context of a follow-up; the tracked email supplies the original body when known."""
    content = tracked_email.body if tracked_email is not None and tracked_email.body else followup.notes or ""
    return FollowupDraftContext(
        followup_id=str(followup.id),
        original_email=DraftOriginalEmail(
            subject=followup.original_subject,
            content=content,
            recipients=followup.original_recipients or [],
            sent_at=followup.original_sent_at,
        ),
        priority=followup.priority,
        days_since_original=max((now - followup.original_sent_at).days, 0),
    )


class FollowupAIService:
    """
    Generates follow-up email drafts.

    The LLM is injected (any ILLM); without one, or with AI_DRAFTS_ENABLED
    off, every draft is the template fallback.
    """

    TONE_GUIDELINES = {
        "professional": "Use formal, business-appropriate language. Be respectful and courteous.",
        "friendly": "Use warm, approachable language while maintaining professionalism.",
        "urgent": "Convey importance without being aggressive. Use time-sensitive language.",
        "casual": "Use relaxed, conversational language appropriate for the relationship.",
    }

    APPROACH_GUIDELINES = {
        "gentle": "Soft reminder approach. Acknowledge they may be busy. No pressure.",
        "direct": "Clear, straightforward approach. State what you need explicitly.",
        "value-add": "Include additional value, insights, or helpful information.",
        "alternative": "Offer alternative solutions or next steps. Show flexibility.",
    }

    TEMPERATURE_BY_TONE = {"urgent": 0.3, "professional": 0.4, "friendly": 0.7, "casual": 0.8}
    MAX_TOKENS_BY_LENGTH = {"short": 300, "medium": 600, "long": 1000}

    TEMPLATES = [
        FollowupTemplate(
            name="Gentle Reminder",
            description="Soft, non-pushy follow-up for initial contact",
            tone="friendly",
            approach="gentle",
            use_case="First follow-up, relationship building",
        ),
        FollowupTemplate(
            name="Professional Check-in",
            description="Formal business follow-up with clear next steps",
            tone="professional",
            approach="direct",
            use_case="Business proposals, formal communications",
        ),
        FollowupTemplate(
            name="Value-Added Follow-up",
            description="Include additional insights or helpful information",
            tone="professional",
            approach="value-add",
            use_case="When you have new information to share",
        ),
        FollowupTemplate(
            name="Alternative Options",
            description="Offer different solutions or flexible approaches",
            tone="friendly",
            approach="alternative",
            use_case="When original request may not be feasible",
        ),
        FollowupTemplate(
            name="Urgent Follow-up",
            description="Time-sensitive follow-up with clear urgency",
            tone="urgent",
            approach="direct",
            use_case="Deadlines, urgent matters",
        ),
    ]

    SYSTEM_PROMPT = """You are an expert email follow-up specialist. Your task is to generate effective, contextual follow-up emails that get responses while maintaining professional relationships.

CRITICAL LANGUAGE RULE: Generate the email in {language}. Match the language and cultural context perfectly.

FOLLOW-UP CONTEXT:
- Original email sent {days} days ago
- Priority level: {priority}
- Follow-up reason: {reason}
- Desired tone: {tone}
- Desired approach: {approach}

TONE GUIDELINES:
{tone_guidelines}

APPROACH GUIDELINES:
{approach_guidelines}

FOLLOW-UP BEST PRACTICES:
1. Reference the original email context naturally
2. Provide value or new information when possible
3. Make it easy for the recipient to respond
4. Keep it concise but complete
5. Use appropriate urgency based on priority
6. Maintain professional relationships
7. Avoid sounding pushy or desperate
{custom_instructions}
RESPONSE FORMAT:
Return only a JSON object:
{{
  "subject": "Follow-up email subject line",
  "body": "Complete email body with proper formatting",
  "tone": "actual tone used",
  "approach": "actual approach used",
  "confidence": 0.85,
  "reasoning": "Brief explanation of approach taken",
  "alternatives": [
    {{"subject": "Alternative subject", "body": "Alternative body", "tone": "tone", "approach": "approach"}}
  ]
}}"""

    def __init__(
        self,
        llm: Optional[ILLM] = None,
        transparency: Optional[TransparencyRepository] = None,
    ):
        self.settings = get_settings()
        self.llm = llm
        self.transparency = transparency

    # ----------------------------------------------------------------
    # Prompt building
    # ----------------------------------------------------------------

    def temperature_for(self, tone: Optional[str]) -> float:
        return self.TEMPERATURE_BY_TONE.get(tone or "", 0.5)

    def max_tokens_for(self, length: Optional[str]) -> int:
        return self.MAX_TOKENS_BY_LENGTH.get(length or "", 600)

    def build_system_prompt(self, context: FollowupDraftContext, options: FollowupDraftOptions) -> str:
        custom = f"\nCUSTOM INSTRUCTIONS: {options.custom_instructions}\n" if options.custom_instructions else ""
        return self.SYSTEM_PROMPT.format(
            language=options.language,
            days=context.days_since_original,
            priority=context.priority,
            reason=context.follow_up_reason,
            tone=options.tone,
            approach=options.approach,
            tone_guidelines=self.TONE_GUIDELINES.get(options.tone, "Use professional, courteous language."),
            approach_guidelines=self.APPROACH_GUIDELINES.get(
                options.approach, "Use a balanced, professional approach."
            ),
            custom_instructions=custom,
        )

    def build_user_prompt(self, context: FollowupDraftContext) -> str:
        original = context.original_email
        lines = [
            "Generate a follow-up email for this context:",
            "",
            "ORIGINAL EMAIL:",
            f"Subject: {original.subject}",
            f"Recipients: {', '.join(original.recipients)}",
            f"Sent: {original.sent_at.date().isoformat()}",
            "",
            "Content:",
            original.content,
            "",
            "FOLLOW-UP DETAILS:",
            f"- Days since original: {context.days_since_original}",
            f"- Reason for follow-up: {context.follow_up_reason}",
            f"- Priority: {context.priority}",
        ]

        contact = context.contact_context
        if contact:
            lines += ["", "CONTACT CONTEXT:"]
            if contact.name:
                lines.append(f"- Contact name: {contact.name}")
            if contact.company:
                lines.append(f"- Company: {contact.company}")
            if contact.previous_interactions:
                lines.append(f"- Previous interactions: {contact.previous_interactions}")
            if contact.last_response_time:
                lines.append(f"- Typical response time: {contact.last_response_time} hours")
            if contact.communication_style:
                lines.append(f"- Communication style: {contact.communication_style}")

        if context.conversation_history:
            lines += ["", "CONVERSATION HISTORY:"]
            for index, entry in enumerate(context.conversation_history[-3:], start=1):
                content = entry.content if len(entry.content) <= 200 else f"{entry.content[:200]}..."
                lines.append(f"{index}. [{entry.direction.upper()}] {entry.subject} ({entry.date.date().isoformat()})")
                lines.append(f"   {content}")

        lines += ["", "Please generate an effective follow-up email that addresses the situation appropriately."]
        return "\n".join(lines)

    @staticmethod
    def context_sources(context: FollowupDraftContext) -> list[str]:
        sources = ["original_email"]
        if context.conversation_history:
            sources.append("conversation_history")
        if context.contact_context:
            sources.append("contact_context")
        return sources

    # ----------------------------------------------------------------
    # Generation
    # ----------------------------------------------------------------

    def parse_draft(
        self,
        response: str,
        context: FollowupDraftContext,
        options: FollowupDraftOptions,
    ) -> Optional[FollowupDraft]:
        """Turn the model's answer into a draft, or None when it has no usable JSON."""
        data: dict[str, Any] = extract_json_safely(response, dict, default={}, required_keys=["subject", "body"])
        if not data or not data.get("subject") or not data.get("body"):
            return None

        alternatives = []
        for alt in data.get("alternatives") or []:
            if not isinstance(alt, dict) or not alt.get("subject") or not alt.get("body"):
                continue
            try:
                alternatives.append(DraftAlternative.model_validate(alt))
            except ValidationError:
                logger.debug(f"Skipping malformed draft alternative: {alt}")

        try:
            confidence = float(data.get("confidence") or 0.8)
        except (TypeError, ValueError):
            confidence = 0.8

        try:
            return FollowupDraft(
                subject=str(data["subject"]),
                body=str(data["body"]),
                tone=data.get("tone") or options.tone,
                approach=data.get("approach") or options.approach,
                confidence=min(max(confidence, 0.0), 1.0),
                reasoning=data.get("reasoning") or "AI-generated follow-up",
                alternatives=alternatives,
                context_used=self.context_sources(context),
                model=self.llm.model_name if self.llm else None,
            )
        except ValidationError as e:
            logger.warning(f"LLM draft has invalid fields: {e.error_count()} errors")
            return None

    def fallback_draft(self, context: FollowupDraftContext, options: FollowupDraftOptions) -> FollowupDraft:
        """Deterministic template draft used when the LLM cannot help."""
        original = context.original_email
        greeting = f"Hi {context.contact_context.name}," if context.contact_context and context.contact_context.name else "Hi,"
        body = (
            f"{greeting}\n\n"
            f'I wanted to follow up on my email "{original.subject}" from {original.sent_at.date().isoformat()}. '
            "I understand you may be busy, so I'm just checking whether you had a chance to look at it.\n\n"
            "Please let me know if you have any questions or need any further information.\n\n"
            "Best regards"
        )
        return FollowupDraft(
            subject=f"Following up: {original.subject}",
            body=body,
            tone=options.tone,
            approach=options.approach,
            confidence=FALLBACK_CONFIDENCE,
            reasoning="Template fallback",
            context_used=self.context_sources(context),
            fallback=True,
        )

    async def generate_draft(
        self,
        context: FollowupDraftContext,
        options: Optional[FollowupDraftOptions] = None,
    ) -> FollowupDraft:
        """
        Generate a follow-up draft.

        Never raises for LLM problems: they end in the template fallback.
        """
        options = options or FollowupDraftOptions()
        draft: Optional[FollowupDraft] = None

        if self.llm is not None and self.settings.AI_DRAFTS_ENABLED:
            messages = [
                {"role": "system", "content": self.build_system_prompt(context, options)},
                {"role": "user", "content": self.build_user_prompt(context)},
            ]
            try:
                response = await self.llm.generate_chat(
                    messages,
                    temperature=self.temperature_for(options.tone),
                    max_tokens=self.max_tokens_for(options.max_length),
                )
                draft = self.parse_draft(response, context, options)
                if draft is None:
                    logger.warning("LLM draft could not be parsed, using template")
            except LLMError as e:
                logger.warning(f"LLM draft generation failed, using template: {e}")

        if draft is None:
            draft = self.fallback_draft(context, options)

        await self._record(context, options, draft)
        return draft

    async def _record(self, context: FollowupDraftContext, options: FollowupDraftOptions, draft: FollowupDraft):
        if self.transparency is None:
            return

        await self.transparency.record_activity(
            agent_id=AGENT_ID,
            activity_type="draft_generated",
            description=f"Drafted follow-up for: {context.original_email.subject}",
            related_entity_type="followup" if context.followup_id else None,
            related_entity_id=UUID(context.followup_id) if context.followup_id else None,
            metadata={
                "tone": draft.tone,
                "approach": draft.approach,
                "max_length": options.max_length,
                "fallback": draft.fallback,
                "model": draft.model,
            },
            thoughts=[
                {
                    "reasoning": draft.reasoning,
                    "alternatives": [alt.subject for alt in draft.alternatives],
                    "confidence": draft.confidence,
                }
            ],
        )

    # ----------------------------------------------------------------
    # Templates
    # ----------------------------------------------------------------

    def get_templates(self, priority: Optional[str] = None, days_since_original: Optional[int] = None) -> list[FollowupTemplate]:
        """Templates suited to the follow-up: urgent ones for high priority, gentle ones for old emails."""
        if priority in ("high", "urgent"):
            return [t for t in self.TEMPLATES if t.tone == "urgent" or t.approach == "direct"]
        if days_since_original and days_since_original > 7:
            return [t for t in self.TEMPLATES if t.approach in ("gentle", "alternative")]
        return list(self.TEMPLATES)
