"""
Tests for recording sent and received emails.
"""

import uuid
from unittest.mock import AsyncMock

import pytest

from app.services.email_account_service import EmailAccountNotFoundError
from app.services.email_tracking_service import EmailTrackingService
from tests.factories import make_email, make_followup


@pytest.fixture
def service(mock_async_session, personal_context):
    service = EmailTrackingService(mock_async_session, personal_context)
    service._emails = AsyncMock()
    service._emails.get_by_message_id = AsyncMock(return_value=None)
    service._emails.create = AsyncMock(side_effect=lambda fields: make_email(**fields))
    service._accounts = AsyncMock()
    service._followups = AsyncMock()
    return service


class TestRecordSent:
    async def test_starts_followup_tracking(self, service):
        followup = make_followup()
        service._followups.get_by_email_id = AsyncMock(return_value=None)
        service._followups.track_sent_email = AsyncMock(return_value=followup)

        email, tracked = await service.record_sent({"subject": "Pricing", "recipients": ["buyer@acme.com"]})

        assert email.direction == "sent"
        assert tracked is followup
        service._followups.track_sent_email.assert_awaited_once_with(email)
        service._followups.detect_responses.assert_not_awaited()

    async def test_existing_followup_is_reused(self, service):
        followup = make_followup()
        service._followups.get_by_email_id = AsyncMock(return_value=followup)

        _, tracked = await service.record_sent({"subject": "Pricing"})

        assert tracked is followup
        service._followups.track_sent_email.assert_not_awaited()

    async def test_duplicate_message_id_returns_stored_email(self, service):
        stored = make_email(direction="sent", message_id="<m1@mail>")
        service._emails.get_by_message_id = AsyncMock(return_value=stored)
        service._followups.get_by_email_id = AsyncMock(return_value=None)
        service._followups.track_sent_email = AsyncMock(return_value=None)

        email, _ = await service.record_sent({"subject": "Pricing", "message_id": "<m1@mail>"})

        assert email is stored
        service._emails.create.assert_not_awaited()

    async def test_unknown_account(self, service):
        service._accounts.get_by_id = AsyncMock(return_value=None)

        with pytest.raises(EmailAccountNotFoundError):
            await service.record_sent({"subject": "Pricing", "email_account_id": uuid.uuid4()})
        service._emails.create.assert_not_awaited()


class TestRecordReceived:
    async def test_closes_answered_followups(self, service):
        closed = [make_followup(status="completed")]
        service._followups.detect_responses = AsyncMock(return_value=closed)

        email, result = await service.record_received({"subject": "Re: Proposal for Q2", "sender": "client@acme.com"})

        assert email.direction == "received"
        assert result == closed
        service._followups.detect_responses.assert_awaited_once_with(email)
        service._followups.track_sent_email.assert_not_awaited()
