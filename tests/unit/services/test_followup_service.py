"""
Unit tests for follow-up status rules, response detection and the service.
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from app.models.db.followups import FollowupReminder, FollowupSettings
from app.services.followup_service import (
    DEFAULT_FOLLOWUP_SETTINGS,
    FollowupNotFoundError,
    FollowupService,
    InvalidFollowupActionError,
    compute_due_at,
    derive_status,
    is_auto_reply_subject,
    is_reply_subject,
    is_response_to,
    normalize_subject,
)
from tests.factories import NOW, make_email, make_followup

OVERDUE_AFTER = timedelta(hours=24)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def service(mock_async_session, personal_context):
    service = FollowupService(mock_async_session, personal_context)
    service._followups = AsyncMock()
    service._followups.add = AsyncMock(side_effect=lambda followup: followup)
    service._followups.save = AsyncMock(side_effect=lambda followup: followup)
    service._reminders = AsyncMock()
    service._settings = AsyncMock()
    service._settings.get = AsyncMock(return_value=None)
    return service


# ============================================================================
# STATUS RULES
# ============================================================================


class TestDeriveStatus:
    def test_due_date_is_sent_at_plus_days(self):
        assert compute_due_at(NOW, 3) == NOW + timedelta(days=3)

    def test_pending_before_due_date(self):
        followup = make_followup(follow_up_due_at=NOW + timedelta(hours=1))
        assert derive_status(followup, NOW, OVERDUE_AFTER) == "pending"

    def test_due_inside_overdue_window(self):
        followup = make_followup(follow_up_due_at=NOW - timedelta(hours=2))
        assert derive_status(followup, NOW, OVERDUE_AFTER) == "due"

    def test_overdue_after_window(self):
        followup = make_followup(follow_up_due_at=NOW - timedelta(hours=25))
        assert derive_status(followup, NOW, OVERDUE_AFTER) == "overdue"

    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    def test_terminal_statuses_never_change(self, status):
        followup = make_followup(status=status, follow_up_due_at=NOW - timedelta(days=10))
        assert derive_status(followup, NOW, OVERDUE_AFTER) == status


# ============================================================================
# SUBJECT AND RESPONSE MATCHING
# ============================================================================


class TestSubjects:
    @pytest.mark.parametrize("subject", ["Re: Proposal", "FWD: numbers", "fw: hello", "  RE: spaced"])
    def test_reply_subjects(self, subject):
        assert is_reply_subject(subject)

    def test_plain_subject_is_not_reply(self):
        assert not is_reply_subject("Proposal for Q2")
        assert not is_reply_subject(None)

    @pytest.mark.parametrize("subject", ["Out of Office: back Monday", "Automatic reply: Proposal", "Auto-Reply"])
    def test_auto_reply_subjects(self, subject):
        assert is_auto_reply_subject(subject)

    def test_normalize_strips_stacked_prefixes(self):
        assert normalize_subject("Re: Fwd: RE:  Proposal   for Q2") == "proposal for q2"


class TestIsResponseTo:
    def test_same_thread(self):
        followup = make_followup()
        tracked = make_email(direction="sent", thread_id="t-1", subject="Proposal for Q2")
        received = make_email(thread_id="t-1", sender="someone@else.com", subject="Unrelated")
        assert is_response_to(followup, tracked, received)

    def test_in_reply_to_message_id(self):
        followup = make_followup()
        tracked = make_email(direction="sent", message_id="<abc@mail>")
        received = make_email(in_reply_to="<abc@mail>", sender="other@else.com", subject="x")
        assert is_response_to(followup, tracked, received)

    def test_subject_match_from_original_recipient(self):
        followup = make_followup(original_recipients=["Client@Acme.com"])
        received = make_email(sender="Client <client@acme.com>", subject="RE: proposal for q2")
        assert is_response_to(followup, None, received)

    def test_subject_match_from_stranger_is_ignored(self):
        followup = make_followup()
        received = make_email(sender="stranger@else.com", subject="Re: Proposal for Q2")
        assert not is_response_to(followup, None, received)


# ============================================================================
# SERVICE
# ============================================================================


class TestFollowupService:
    async def test_create_followup_schedules_reminder_at_due_date(self, service, personal_context):
        followup = await service.create_followup(
            original_subject="Proposal",
            original_recipients=["client@acme.com"],
            original_sent_at=NOW,
            follow_up_days=5,
        )

        assert followup.status == "pending"
        assert followup.follow_up_due_at == NOW + timedelta(days=5)
        assert followup.user_id == personal_context.user_id
        assert followup.organization_id is None

        reminder = service._reminders.add.await_args.args[0]
        assert reminder.reminder_time == followup.follow_up_due_at
        assert reminder.reminder_type == "dashboard"

    async def test_create_followup_rejects_unknown_priority(self, service):
        with pytest.raises(InvalidFollowupActionError):
            await service.create_followup("Proposal", ["a@b.com"], NOW, priority="critical")

    async def test_get_followup_not_found(self, service):
        service._followups.get_by_id = AsyncMock(return_value=None)
        with pytest.raises(FollowupNotFoundError):
            await service.get_followup(uuid.uuid4())

    async def test_unknown_action(self, service):
        with pytest.raises(InvalidFollowupActionError):
            await service.apply_action(uuid.uuid4(), "archive")

    async def test_snooze_needs_future_date(self, service):
        with pytest.raises(InvalidFollowupActionError):
            await service.snooze(uuid.uuid4(), NOW - timedelta(hours=1), now=NOW)

    async def test_snooze_resets_reminder_cycle(self, service):
        followup = make_followup(status="overdue", reminder_count=2, last_reminder_at=NOW)
        service._followups.get_by_id = AsyncMock(return_value=followup)

        until = NOW + timedelta(days=2)
        result = await service.snooze(followup.id, until, now=NOW)

        assert result.status == "pending"
        assert result.follow_up_due_at == until
        assert result.reminder_count == 0
        assert result.last_reminder_at is None
        service._reminders.cancel_pending_for.assert_not_awaited()

    async def test_snooze_accepts_naive_dates_as_utc(self, service):
        followup = make_followup(status="overdue")
        service._followups.get_by_id = AsyncMock(return_value=followup)

        naive = (NOW + timedelta(days=2)).replace(tzinfo=None)
        result = await service.snooze(followup.id, naive, now=NOW)

        assert result.follow_up_due_at == NOW + timedelta(days=2)
        assert result.follow_up_due_at.tzinfo is not None

    async def test_snooze_naive_past_date_rejected(self, service):
        with pytest.raises(InvalidFollowupActionError):
            await service.snooze(uuid.uuid4(), NOW.replace(tzinfo=None) - timedelta(hours=1), now=NOW)

    async def test_create_followup_with_naive_sent_at(self, service):
        followup = await service.create_followup(
            "Proposal", ["a@b.com"], NOW.replace(tzinfo=None), follow_up_days=3
        )

        assert followup.original_sent_at == NOW
        assert followup.follow_up_due_at == NOW + timedelta(days=3)

    async def test_complete_cancels_pending_reminders(self, service):
        followup = make_followup(status="due")
        service._followups.get_by_id = AsyncMock(return_value=followup)

        result = await service.apply_action(followup.id, "complete")

        assert result.status == "completed"
        assert result.response_received_at is not None
        service._reminders.cancel_pending_for.assert_awaited_once_with([followup.id])

    async def test_bulk_update_counts_returned_rows(self, service):
        ids = [uuid.uuid4(), uuid.uuid4()]
        service._followups.bulk_update_status = AsyncMock(return_value=ids[:1])

        assert await service.bulk_update(ids, "cancelled") == 1
        service._reminders.cancel_pending_for.assert_awaited_once_with(ids[:1])

    async def test_bulk_update_rejects_unknown_status(self, service):
        with pytest.raises(InvalidFollowupActionError):
            await service.bulk_update([uuid.uuid4()], "archived")

    async def test_refresh_statuses_counts_changes(self, service):
        followups = [
            make_followup(follow_up_due_at=NOW + timedelta(days=1)),
            make_followup(follow_up_due_at=NOW - timedelta(hours=1)),
            make_followup(status="due", follow_up_due_at=NOW - timedelta(days=3)),
        ]
        service._followups.find_open = AsyncMock(return_value=followups)

        assert await service.refresh_statuses(now=NOW) == 2
        assert [f.status for f in followups] == ["pending", "due", "overdue"]
        service._followups.save_all.assert_awaited_once()

    async def test_stats_response_rate(self, service):
        service._followups.status_counts = AsyncMock(return_value={"pending": 2, "completed": 2})
        service._followups.count_responded = AsyncMock(return_value=1)

        stats = await service.get_stats()

        assert stats["total_followups"] == 4
        assert stats["pending_followups"] == 2
        assert stats["overdue_followups"] == 0
        assert stats["response_rate"] == 25.0

    async def test_stats_without_followups(self, service):
        service._followups.status_counts = AsyncMock(return_value={})
        stats = await service.get_stats()
        assert stats["total_followups"] == 0
        assert stats["response_rate"] == 0


class TestEmailTracking:
    async def test_sent_email_starts_auto_followup(self, service, personal_context):
        service._followups.count_open_for_recipients = AsyncMock(return_value=0)
        email = make_email(
            direction="sent",
            user_id=personal_context.user_id,
            subject="Pricing",
            recipients=["Buyer <buyer@acme.com>"],
        )

        followup = await service.track_sent_email(email)

        assert followup is not None
        assert followup.follow_up_type == "auto"
        assert followup.original_recipients == ["buyer@acme.com"]
        assert followup.email_id == email.id

    async def test_auto_reply_is_not_tracked(self, service):
        email = make_email(direction="sent", subject="Automatic reply: Pricing")
        assert await service.track_sent_email(email) is None

    async def test_reply_is_not_tracked_when_excluded(self, service):
        email = make_email(direction="sent", subject="Re: Pricing")
        assert await service.track_sent_email(email) is None

    async def test_limit_per_contact(self, service):
        service._followups.count_open_for_recipients = AsyncMock(return_value=3)
        email = make_email(direction="sent", subject="Pricing", recipients=["buyer@acme.com"])
        assert await service.track_sent_email(email) is None

    async def test_received_reply_closes_matching_followups(self, service):
        matching = make_followup(status="due")
        other = make_followup(original_subject="Invoice", original_recipients=["billing@else.com"])
        service._followups.find_open_with_emails = AsyncMock(return_value=[(matching, None), (other, None)])

        closed = await service.detect_responses(make_email())

        assert closed == [matching]
        assert matching.status == "completed"
        assert matching.response_received_at == NOW
        assert other.status == "pending"
        service._reminders.cancel_pending_for.assert_awaited_once_with([matching.id])


class TestReminders:
    async def test_mark_reminder_sent_counts_on_followup(self, service):
        followup = make_followup(status="due", reminder_count=1)
        reminder = FollowupReminder(
            id=uuid.uuid4(),
            user_id=followup.user_id,
            reminder_type="dashboard",
            reminder_time=NOW,
            status="pending",
            title="Follow-up due: Proposal for Q2",
        )
        reminder.followup = followup
        service._reminders.get_by_id = AsyncMock(return_value=reminder)
        service._reminders.save = AsyncMock(side_effect=lambda r: r)

        result = await service.mark_reminder_sent(reminder.id, user_id=followup.user_id)

        assert result.status == "sent"
        assert result.sent_at is not None
        assert followup.reminder_count == 2
        assert followup.last_reminder_at == result.sent_at
        service._reminders.get_by_id.assert_awaited_once_with(reminder.id, user_id=followup.user_id)

    async def test_mark_unknown_reminder(self, service):
        service._reminders.get_by_id = AsyncMock(return_value=None)
        with pytest.raises(FollowupNotFoundError):
            await service.mark_reminder_sent(uuid.uuid4())

    async def test_dispatch_due_reminders(self, service):
        followups = [make_followup(status="due"), make_followup(status="overdue", reminder_count=None)]
        reminders = []
        for followup in followups:
            reminder = FollowupReminder(
                user_id=followup.user_id, reminder_type="dashboard", reminder_time=NOW, status="pending", title="Due"
            )
            reminder.followup = followup
            reminders.append(reminder)
        service._reminders.find_pending = AsyncMock(return_value=reminders)
        service._reminders.save = AsyncMock(side_effect=lambda r: r)

        assert await service.dispatch_due_reminders() == 2

        assert [r.status for r in reminders] == ["sent", "sent"]
        assert [f.reminder_count for f in followups] == [1, 1]
        assert all(f.last_reminder_at is not None for f in followups)
        assert service._reminders.save.await_count == 2

    async def test_nothing_due(self, service):
        service._reminders.find_pending = AsyncMock(return_value=[])
        assert await service.dispatch_due_reminders() == 0
        service._reminders.save.assert_not_awaited()


class TestSettings:
    async def test_defaults_when_never_saved(self, service, personal_context):
        settings = await service.get_settings()

        assert settings == DEFAULT_FOLLOWUP_SETTINGS
        service._settings.get.assert_awaited_once_with(personal_context.user_id)

    async def test_saved_settings_returned(self, service):
        service._settings.get = AsyncMock(
            return_value=FollowupSettings(**{**DEFAULT_FOLLOWUP_SETTINGS, "default_followup_days": 7})
        )
        assert (await service.get_settings())["default_followup_days"] == 7

    async def test_update_merges_over_current_values(self, service, personal_context):
        service._settings.upsert = AsyncMock(
            side_effect=lambda user_id, **fields: FollowupSettings(user_id=user_id, **fields)
        )

        settings = await service.update_settings({"default_priority": "high", "exclude_replies": False})

        assert settings == {**DEFAULT_FOLLOWUP_SETTINGS, "default_priority": "high", "exclude_replies": False}
        assert service._settings.upsert.await_args.args == (personal_context.user_id,)

    async def test_update_rejects_unknown_priority(self, service):
        with pytest.raises(InvalidFollowupActionError):
            await service.update_settings({"default_priority": "critical"})
        service._settings.upsert.assert_not_awaited()
