"""
Unit tests for automation triggers, approvals and rule processing.
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.db.automation import FollowupAutomationExecution, FollowupAutomationRule
from app.models.followups import FollowupDraft
from app.services import followup_automation_service as automation_module
from app.services.followup_automation_service import (
    AutomationError,
    AutomationPermissionError,
    FollowupAutomationService,
    approval_outcome,
    matches_trigger,
    normalize_rule_data,
)
from tests.factories import NOW, make_followup

# NOW is Tuesday 2026-03-10 12:00 UTC


def make_rule(**overrides) -> FollowupAutomationRule:
    fields = {
        "id": uuid.uuid4(),
        "user_id": uuid.uuid4(),
        "organization_id": None,
        "name": "Chase overdue",
        "is_active": True,
        "trigger_conditions": {"status_types": ["overdue"]},
        "automation_settings": {},
        "ai_preferences": {},
        "approval_workflow": {},
        "execution_count": 0,
        "success_count": 0,
    }
    fields.update(overrides)
    return FollowupAutomationRule(**fields)


def make_execution(rule: FollowupAutomationRule, **overrides) -> FollowupAutomationExecution:
    fields = {
        "id": uuid.uuid4(),
        "rule_id": rule.id,
        "followup_id": uuid.uuid4(),
        "user_id": rule.user_id,
        "status": "awaiting_approval",
        "approvals": [],
        "created_at": NOW - timedelta(hours=2),
    }
    fields.update(overrides)
    execution = FollowupAutomationExecution(**fields)
    execution.rule = rule
    return execution


@pytest.fixture
def ai_service():
    ai = MagicMock()
    ai.generate_draft = AsyncMock(
        return_value=FollowupDraft(subject="Following up", body="Any news?", tone="professional", approach="gentle")
    )
    return ai


@pytest.fixture
def service(mock_async_session, personal_context, ai_service):
    service = FollowupAutomationService(mock_async_session, personal_context, ai_service=ai_service)
    repository = AsyncMock()
    repository.add_execution = AsyncMock(side_effect=lambda execution: execution)
    repository.save_execution = AsyncMock(side_effect=lambda execution: execution)
    repository.save_rule = AsyncMock(side_effect=lambda rule: rule)
    repository.add_rule = AsyncMock(side_effect=lambda rule: rule)
    service._repository = repository
    return service


# ============================================================================
# TRIGGERS
# ============================================================================


class TestMatchesTrigger:
    def test_empty_conditions_match(self):
        assert matches_trigger(make_followup(), {}, NOW, "UTC")

    def test_status_and_priority(self):
        followup = make_followup(status="overdue", priority="high")
        assert matches_trigger(followup, {"status_types": ["overdue"], "priority_levels": ["high"]}, NOW, "UTC")
        assert not matches_trigger(followup, {"priority_levels": ["low"]}, NOW, "UTC")

    def test_days_overdue(self):
        followup = make_followup(follow_up_due_at=NOW - timedelta(days=2, hours=1))
        assert matches_trigger(followup, {"days_overdue": 2}, NOW, "UTC")
        assert not matches_trigger(followup, {"days_overdue": 3}, NOW, "UTC")

    def test_recipient_patterns(self):
        followup = make_followup(original_recipients=["ceo@bigcorp.com"])
        assert matches_trigger(followup, {"recipient_patterns": [r"@bigcorp\.com$"]}, NOW, "UTC")
        assert not matches_trigger(followup, {"recipient_patterns": [r"@smallco\."]}, NOW, "UTC")

    def test_time_of_day_within_an_hour(self):
        followup = make_followup()
        assert matches_trigger(followup, {"time_of_day": "13:00"}, NOW, "UTC")
        assert not matches_trigger(followup, {"time_of_day": "15:00"}, NOW, "UTC")

    def test_time_of_day_uses_timezone(self):
        # 12:00 UTC is 13:00 in Ljubljana (CET)
        followup = make_followup()
        assert matches_trigger(followup, {"time_of_day": "14:00"}, NOW, "Europe/Ljubljana")
        assert not matches_trigger(followup, {"time_of_day": "14:00"}, NOW, "America/New_York")

    def test_days_of_week_sunday_is_zero(self):
        followup = make_followup()
        assert matches_trigger(followup, {"days_of_week": [2]}, NOW, "UTC")
        assert not matches_trigger(followup, {"days_of_week": [0, 6]}, NOW, "UTC")


class TestNormalizeRuleData:
    @pytest.mark.parametrize(
        "data",
        [
            {"trigger_conditions": {"recipient_patterns": ["(unclosed"]}},
            {"trigger_conditions": {"time_of_day": "25:00"}},
            {"trigger_conditions": {"days_of_week": [7]}},
            {"trigger_conditions": {"days_overdue": "soon"}},
            {"trigger_conditions": {"priority_levels": ["critical"]}},
            {"automation_settings": {"max_attempts": "many"}},
            {"automation_settings": {"max_attempts": 0}},
            {"ai_preferences": {"tone": "sarcastic"}},
            {"approval_workflow": {"fallback_action": "escalate"}},
            {"approval_workflow": {"timeout_hours": "a day"}},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(AutomationError):
            normalize_rule_data(data)

    def test_numeric_strings_become_numbers(self):
        approver = uuid.uuid4()
        data = normalize_rule_data(
            {
                "name": "Chase",
                "trigger_conditions": {"days_overdue": "3", "time_of_day": "09:30", "days_of_week": [1, 5]},
                "automation_settings": {"max_attempts": "2"},
                "approval_workflow": {"approvers": [approver], "timeout_hours": "12"},
            }
        )

        assert data["name"] == "Chase"
        assert data["trigger_conditions"] == {"days_overdue": 3, "time_of_day": "09:30", "days_of_week": [1, 5]}
        assert data["automation_settings"] == {"max_attempts": 2}
        assert data["approval_workflow"] == {"approvers": [str(approver)], "timeout_hours": 12}

    def test_absent_sections_untouched(self):
        assert normalize_rule_data({"is_active": False}) == {"is_active": False}

    def test_normalized_conditions_match(self):
        conditions = normalize_rule_data({"trigger_conditions": {"days_overdue": "2"}})["trigger_conditions"]
        followup = make_followup(status="overdue", follow_up_due_at=NOW - timedelta(days=3))

        assert matches_trigger(followup, conditions, NOW, "UTC")


# ============================================================================
# APPROVALS
# ============================================================================


class TestApprovalOutcome:
    def test_no_decisions_yet(self):
        assert approval_outcome([], {}) == "awaiting_approval"

    def test_any_rejection_rejects(self):
        approvals = [{"approver_id": "a", "approved": True}, {"approver_id": "b", "approved": False}]
        assert approval_outcome(approvals, {}) == "rejected"

    def test_single_approval_is_enough_by_default(self):
        assert approval_outcome([{"approver_id": "a", "approved": True}], {"approvers": ["a", "b"]}) == "approved"

    def test_require_all_waits_for_everyone(self):
        workflow = {"approvers": ["a", "b"], "require_all": True}
        assert approval_outcome([{"approver_id": "a", "approved": True}], workflow) == "awaiting_approval"
        both = [{"approver_id": "a", "approved": True}, {"approver_id": "b", "approved": True}]
        assert approval_outcome(both, workflow) == "approved"


class TestProcessApproval:
    async def test_owner_approves(self, service):
        rule = make_rule()
        execution = make_execution(rule)
        service._repository.get_execution = AsyncMock(return_value=execution)

        result = await service.process_approval(execution.id, rule.user_id, approved=True, comment="ok")

        assert result.status == "approved"
        assert result.approvals[0]["approver_id"] == str(rule.user_id)
        assert result.approvals[0]["comment"] == "ok"

    async def test_unlisted_approver_is_refused(self, service):
        rule = make_rule(approval_workflow={"approvers": [str(uuid.uuid4())]})
        execution = make_execution(rule)
        service._repository.get_execution = AsyncMock(return_value=execution)

        with pytest.raises(AutomationPermissionError):
            await service.process_approval(execution.id, uuid.uuid4(), approved=True)

    async def test_only_awaiting_executions(self, service):
        rule = make_rule()
        execution = make_execution(rule, status="sent")
        service._repository.get_execution = AsyncMock(return_value=execution)

        with pytest.raises(AutomationError):
            await service.process_approval(execution.id, rule.user_id, approved=True)

    async def test_expired_approval_skipped_by_default(self, service):
        rule = make_rule()
        execution = make_execution(rule, approval_deadline=NOW - timedelta(minutes=1))
        service._repository.find_expired_approvals = AsyncMock(return_value=[execution])

        assert await service.expire_approvals(now=NOW) == 1
        assert execution.status == "skipped"
        assert execution.error_message == "Approval timed out"

    async def test_expired_approval_sent_when_fallback_is_send(self, service, monkeypatch):
        followup_service = MagicMock()
        followup_service.mark_sent = AsyncMock()
        monkeypatch.setattr(automation_module, "FollowupService", MagicMock(return_value=followup_service))

        rule = make_rule(approval_workflow={"fallback_action": "send"})
        execution = make_execution(rule, approval_deadline=NOW - timedelta(minutes=1))
        service._repository.find_expired_approvals = AsyncMock(return_value=[execution])

        await service.expire_approvals(now=NOW)

        assert execution.status == "sent"
        assert execution.executed_at == NOW
        assert rule.success_count == 1
        followup_service.mark_sent.assert_awaited_once_with(execution.followup_id, sent_at=NOW)


# ============================================================================
# PROCESSING
# ============================================================================


class TestProcessRules:
    @pytest.fixture
    def followups(self, monkeypatch):
        """Open follow-ups returned for every rule owner."""
        items = []
        repository = MagicMock()
        repository.find_open = AsyncMock(return_value=items)
        monkeypatch.setattr(automation_module, "FollowupRepository", MagicMock(return_value=repository))
        return items

    async def test_matching_followup_waits_for_approval(self, service, followups, ai_service):
        rule = make_rule()
        followups.append(make_followup(status="overdue"))
        service._repository.find_rules = AsyncMock(return_value=[rule])
        service._repository.executions_for = AsyncMock(return_value=[])

        summary = await service.process_automation_rules(now=NOW)

        assert summary == {"rules": 1, "matched": 1, "executed": 1, "skipped": 0, "failed": 0}
        execution = service._repository.save_execution.await_args.args[0]
        assert execution.status == "awaiting_approval"
        assert execution.draft_subject == "Following up"
        assert execution.approval_deadline == NOW + timedelta(hours=24)
        assert rule.execution_count == 1
        ai_service.generate_draft.assert_awaited_once()

    async def test_in_flight_execution_is_skipped(self, service, followups):
        rule = make_rule()
        followup = make_followup(status="overdue")
        followups.append(followup)
        service._repository.find_rules = AsyncMock(return_value=[rule])
        service._repository.executions_for = AsyncMock(return_value=[make_execution(rule, followup_id=followup.id)])

        summary = await service.process_automation_rules(now=NOW)

        assert summary["skipped"] == 1
        assert summary["executed"] == 0

    async def test_max_attempts(self, service, followups):
        rule = make_rule(automation_settings={"max_attempts": 2})
        followups.append(make_followup(status="overdue"))
        service._repository.find_rules = AsyncMock(return_value=[rule])
        service._repository.executions_for = AsyncMock(
            return_value=[make_execution(rule, status="rejected"), make_execution(rule, status="skipped")]
        )

        summary = await service.process_automation_rules(now=NOW)

        assert summary["skipped"] == 1

    async def test_draft_failure_marks_execution_failed(self, service, followups, ai_service):
        ai_service.generate_draft = AsyncMock(side_effect=RuntimeError("model crashed"))
        rule = make_rule()
        followups.append(make_followup(status="overdue"))
        service._repository.find_rules = AsyncMock(return_value=[rule])
        service._repository.executions_for = AsyncMock(return_value=[])

        summary = await service.process_automation_rules(now=NOW)

        assert summary["failed"] == 1
        execution = service._repository.save_execution.await_args.args[0]
        assert execution.status == "failed"
        assert execution.error_message == "model crashed"

    async def test_non_matching_followups_ignored(self, service, followups):
        followups.append(make_followup(status="pending"))
        service._repository.find_rules = AsyncMock(return_value=[make_rule()])

        summary = await service.process_automation_rules(now=NOW)

        assert summary["matched"] == 0
        service._repository.add_execution.assert_not_awaited()

    async def test_broken_rule_does_not_stop_the_run(self, service, followups, mock_async_session):
        broken = make_rule(trigger_conditions={"status_types": ["overdue"], "days_overdue": "3"})
        healthy = make_rule()
        followups.append(make_followup(status="overdue"))
        service._repository.find_rules = AsyncMock(return_value=[broken, healthy])
        service._repository.executions_for = AsyncMock(return_value=[])

        summary = await service.process_automation_rules(now=NOW)

        assert summary == {"rules": 2, "matched": 1, "executed": 1, "skipped": 0, "failed": 1}
        mock_async_session.rollback.assert_awaited_once()
        mock_async_session.refresh.assert_any_await(healthy)
        assert healthy.execution_count == 1

    async def test_failed_send_rolls_back_and_records_failure(
        self, service, followups, mock_async_session, monkeypatch
    ):
        followup_service = MagicMock()
        followup_service.mark_sent = AsyncMock(side_effect=RuntimeError("commit failed"))
        monkeypatch.setattr(automation_module, "FollowupService", MagicMock(return_value=followup_service))
        rule = make_rule(automation_settings={"require_approval": False, "auto_send": True})
        followups.append(make_followup(status="overdue"))
        service._repository.find_rules = AsyncMock(return_value=[rule])
        service._repository.executions_for = AsyncMock(return_value=[])

        summary = await service.process_automation_rules(now=NOW)

        assert summary["failed"] == 1
        mock_async_session.rollback.assert_awaited_once()
        execution = service._repository.save_execution.await_args.args[0]
        mock_async_session.refresh.assert_any_await(execution)
        mock_async_session.refresh.assert_any_await(rule)
        assert execution.status == "failed"
        assert execution.error_message == "commit failed"
        assert rule.execution_count == 1
        assert rule.success_count == 0
        service._repository.save_rule.assert_awaited_with(rule)


class TestRulesAndStats:
    async def test_create_rule_validates_conditions(self, service):
        with pytest.raises(AutomationError):
            await service.create_rule({"name": "Bad", "trigger_conditions": {"time_of_day": "noon"}})

    async def test_create_rule_stores_typed_sections(self, service):
        rule = await service.create_rule(
            {"name": "Chase", "trigger_conditions": {"days_overdue": "3"}, "automation_settings": {"max_attempts": "2"}}
        )

        assert rule.trigger_conditions == {"days_overdue": 3}
        assert rule.settings["max_attempts"] == 2

    async def test_update_rule_rejects_bad_settings(self, service):
        service._repository.get_rule = AsyncMock(return_value=make_rule())

        with pytest.raises(AutomationError):
            await service.update_rule(uuid.uuid4(), {"automation_settings": {"max_attempts": "many"}})
        service._repository.save_rule.assert_not_awaited()

    async def test_create_rule_stamps_owner(self, service, personal_context):
        rule = await service.create_rule({"name": "Chase", "trigger_conditions": {"status_types": ["due"]}})
        assert rule.user_id == personal_context.user_id
        assert rule.organization_id is None

    async def test_stats(self, service):
        rule = make_rule()
        sent = make_execution(rule, status="sent", executed_at=NOW)
        service._repository.find_rules = AsyncMock(return_value=[rule, make_rule(is_active=False)])
        service._repository.execution_status_counts = AsyncMock(return_value={"sent": 1, "awaiting_approval": 3})
        service._repository.sent_executions = AsyncMock(return_value=[sent])

        stats = await service.get_stats()

        assert stats["total_rules"] == 2
        assert stats["active_rules"] == 1
        assert stats["total_executions"] == 4
        assert stats["pending_approvals"] == 3
        assert stats["success_rate"] == 25.0
        assert stats["avg_response_time"] == 2.0
        assert stats["cost_savings"] == 0.5
        assert stats["time_savings"] == 10
