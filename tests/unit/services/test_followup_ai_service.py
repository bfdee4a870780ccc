"""
Unit tests for follow-up draft generation.

The LLM is a mock; no Ollama instance is needed.
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.interfaces.llm import LLMConnectionError
from app.models.followups import (
    ContactContext,
    DraftOriginalEmail,
    FollowupDraftContext,
    FollowupDraftOptions,
    HistoryEntry,
)
from app.services.followup_ai_service import FALLBACK_CONFIDENCE, FollowupAIService, draft_context_for
from tests.factories import NOW, make_email, make_followup


@pytest.fixture
def context():
    return FollowupDraftContext(
        followup_id=str(uuid.uuid4()),
        original_email=DraftOriginalEmail(
            subject="Partnership proposal",
            content="Attached is our proposal.",
            recipients=["ana@acme.com"],
            sent_at=NOW - timedelta(days=5),
        ),
        priority="high",
        days_since_original=5,
        contact_context=ContactContext(name="Ana", company="Acme"),
    )


class TestPrompts:
    def test_system_prompt_carries_options(self, context):
        options = FollowupDraftOptions(
            tone="urgent",
            approach="direct",
            language="Slovenian",
            custom_instructions="Mention the deadline",
        )

        prompt = FollowupAIService().build_system_prompt(context, options)

        assert "Generate the email in Slovenian" in prompt
        assert "Original email sent 5 days ago" in prompt
        assert FollowupAIService.TONE_GUIDELINES["urgent"] in prompt
        assert FollowupAIService.APPROACH_GUIDELINES["direct"] in prompt
        assert "CUSTOM INSTRUCTIONS: Mention the deadline" in prompt
        assert '"subject": "Follow-up email subject line"' in prompt

    def test_user_prompt_includes_contact_and_recent_history(self, context):
        context.conversation_history = [
            HistoryEntry(subject=f"Message {i}", content="x" * 250, date=NOW, direction="sent") for i in range(5)
        ]

        prompt = FollowupAIService().build_user_prompt(context)

        assert "Subject: Partnership proposal" in prompt
        assert "- Contact name: Ana" in prompt
        assert "- Company: Acme" in prompt
        assert "Message 0" not in prompt
        assert "1. [SENT] Message 2" in prompt
        assert f"{'x' * 200}..." in prompt

    def test_sampling_by_tone_and_length(self):
        service = FollowupAIService()
        assert service.temperature_for("urgent") == 0.3
        assert service.temperature_for("casual") == 0.8
        assert service.temperature_for(None) == 0.5
        assert service.max_tokens_for("short") == 300
        assert service.max_tokens_for("long") == 1000


class TestParseDraft:
    def test_json_in_code_block(self, context):
        response = """Here you go:
```json
{"subject": "Quick check-in", "body": "Hi Ana", "confidence": 1.7,
 "alternatives": [{"subject": "Alt", "body": "Alt body"}, {"subject": "No body"}]}
```"""
        draft = FollowupAIService().parse_draft(response, context, FollowupDraftOptions())

        assert draft.subject == "Quick check-in"
        assert draft.confidence == 1.0
        assert [alt.subject for alt in draft.alternatives] == ["Alt"]
        assert draft.context_used == ["original_email", "contact_context"]
        assert draft.tone == "professional"

    def test_missing_body_is_unusable(self, context):
        assert FollowupAIService().parse_draft('{"subject": "Only subject"}', context, FollowupDraftOptions()) is None

    def test_prose_is_unusable(self, context):
        assert FollowupAIService().parse_draft("I cannot help with that.", context, FollowupDraftOptions()) is None

    def test_wrongly_typed_fields_are_unusable(self, context):
        response = '{"subject": "S", "body": "B", "tone": 5, "reasoning": ["a"]}'
        assert FollowupAIService().parse_draft(response, context, FollowupDraftOptions()) is None

    def test_malformed_alternative_is_dropped(self, context):
        response = (
            '{"subject": "S", "body": "B", "alternatives": '
            '[{"subject": "a", "body": "b", "tone": 1}, {"subject": "c", "body": "d", "tone": "friendly"}]}'
        )
        draft = FollowupAIService().parse_draft(response, context, FollowupDraftOptions())

        assert [alt.subject for alt in draft.alternatives] == ["c"]


class TestGenerateDraft:
    async def test_llm_draft(self, context, mock_llm):
        transparency = MagicMock()
        transparency.record_activity = AsyncMock()
        service = FollowupAIService(llm=mock_llm, transparency=transparency)

        draft = await service.generate_draft(context, FollowupDraftOptions(tone="friendly", max_length="short"))

        assert draft.subject == "Checking in"
        assert draft.fallback is False
        assert draft.model == "llama3.2:latest"
        kwargs = mock_llm.generate_chat.await_args.kwargs
        assert kwargs == {"temperature": 0.7, "max_tokens": 300}
        messages = mock_llm.generate_chat.await_args.args[0]
        assert [m["role"] for m in messages] == ["system", "user"]

        recorded = transparency.record_activity.await_args.kwargs
        assert recorded["agent_id"] == "followup_ai"
        assert recorded["related_entity_type"] == "followup"
        assert recorded["thoughts"][0]["confidence"] == 0.9

    async def test_llm_error_falls_back_to_template(self, context, mock_llm):
        mock_llm.generate_chat = AsyncMock(side_effect=LLMConnectionError("Ollama is down"))

        draft = await FollowupAIService(llm=mock_llm).generate_draft(context)

        assert draft.fallback is True
        assert draft.confidence == FALLBACK_CONFIDENCE
        assert draft.subject == "Following up: Partnership proposal"
        assert draft.body.startswith("Hi Ana,")

    async def test_unparseable_answer_falls_back(self, context, mock_llm):
        mock_llm.generate_chat = AsyncMock(return_value="Sure! Here is an email...")

        draft = await FollowupAIService(llm=mock_llm).generate_draft(context)

        assert draft.fallback is True

    async def test_wrongly_typed_answer_falls_back(self, context, mock_llm):
        mock_llm.generate_chat = AsyncMock(
            return_value='{"subject": "S", "body": "B", "tone": 5, "alternatives": [{"subject": "a", "body": "b"}]}'
        )

        draft = await FollowupAIService(llm=mock_llm).generate_draft(context)

        assert draft.fallback is True
        assert draft.subject == "Following up: Partnership proposal"

    async def test_without_llm(self, context):
        draft = await FollowupAIService().generate_draft(context)
        assert draft.fallback is True
        assert draft.model is None


class TestTemplates:
    def test_high_priority_gets_urgent_or_direct(self):
        templates = FollowupAIService().get_templates(priority="urgent")
        assert templates
        assert all(t.tone == "urgent" or t.approach == "direct" for t in templates)

    def test_old_emails_get_gentle_or_alternative(self):
        templates = FollowupAIService().get_templates(days_since_original=10)
        assert {t.approach for t in templates} <= {"gentle", "alternative"}

    def test_default_is_every_template(self):
        assert len(FollowupAIService().get_templates()) == len(FollowupAIService.TEMPLATES)


class TestDraftContext:
    def test_tracked_email_body_is_the_content(self):
        followup = make_followup(notes="my notes")
        tracked = make_email(direction="sent", body="Original body")

        context = draft_context_for(followup, NOW, tracked)

        assert context.original_email.content == "Original body"
        assert context.days_since_original == 3
        assert context.followup_id == str(followup.id)

    def test_notes_without_tracked_email(self):
        followup = make_followup(notes="my notes")
        assert draft_context_for(followup, NOW).original_email.content == "my notes"
