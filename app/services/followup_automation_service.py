"""
Follow-up Automation Service.

Rules pick open follow-ups by trigger conditions and act on them: generate
a draft, wait for approval, send. Every application of a rule to a
follow-up is an execution:

    pending -> generating -> awaiting_approval -> approved / rejected -> sent
                                   |
                                   +-- deadline passed -> fallback_action (send or skip)

A failure at any step leaves the execution failed with the error message.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

import pytz
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings
from app.models.automation import RULE_SECTIONS
from app.core.tenancy import TenantContext
from app.models.db.automation import (
    IN_FLIGHT_EXECUTION_STATUSES,
    FollowupAutomationExecution,
    FollowupAutomationRule,
)
from app.models.db.base import utcnow
from app.models.db.followups import EmailFollowup
from app.models.followups import FollowupDraftOptions
from app.repositories.automation_repository import AutomationRepository
from app.repositories.followup_repository import FollowupRepository
from app.services.followup_ai_service import FollowupAIService, draft_context_for
from app.services.followup_service import FollowupService

logger = logging.getLogger(__name__)

COST_SAVED_PER_SEND = 0.50
MINUTES_SAVED_PER_SEND = 10


# ============================================================
# Exceptions
# ============================================================


class AutomationError(Exception):
    """Invalid automation request (bad rule data, execution not awaiting approval)."""

    pass


class AutomationNotFoundError(AutomationError):
    pass


class AutomationPermissionError(AutomationError):
    """The caller is not one of the rule's approvers."""

    pass


# ============================================================
# Trigger matching
# ============================================================


def local_now(now: datetime, timezone_name: str | None = None) -> datetime:
    tz = pytz.timezone(timezone_name or get_settings().FOLLOWUP_TIMEZONE)
    return now.astimezone(tz)


def matches_trigger(
    followup: EmailFollowup,
    conditions: dict[str, Any],
    now: datetime,
    timezone_name: str | None = None,
) -> bool:
    """
    Whether a follow-up satisfies a rule's trigger conditions at `now`.

    Time of day matches within one hour of HH:MM; days_of_week use 0 for
    Sunday. Both are evaluated in FOLLOWUP_TIMEZONE.
    """
    if conditions.get("status_types") and followup.status not in conditions["status_types"]:
        return False

    if conditions.get("priority_levels") and followup.priority not in conditions["priority_levels"]:
        return False

    if conditions.get("days_overdue"):
        days_overdue = (now - followup.follow_up_due_at).days
        if days_overdue < conditions["days_overdue"]:
            return False

    if conditions.get("recipient_patterns"):
        patterns = [re.compile(pattern, re.IGNORECASE) for pattern in conditions["recipient_patterns"]]
        recipients = followup.original_recipients or []
        if not any(pattern.search(recipient) for recipient in recipients for pattern in patterns):
            return False

    local = None
    if conditions.get("time_of_day"):
        local = local_now(now, timezone_name)
        target_hour = int(conditions["time_of_day"].split(":")[0])
        if abs(local.hour - target_hour) > 1:
            return False

    if conditions.get("days_of_week"):
        local = local or local_now(now, timezone_name)
        sunday_based_day = (local.weekday() + 1) % 7
        if sunday_based_day not in conditions["days_of_week"]:
            return False

    return True


def _validation_message(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" if error["loc"] else error["msg"]
        for error in e.errors()
    )


def normalize_rule_data(data: dict[str, Any]) -> dict[str, Any]:
    """Validate the JSON sections present in rule data and return them normalized."""
    normalized = dict(data)
    for key, model in RULE_SECTIONS.items():
        if key not in data:
            continue
        try:
            normalized[key] = model.model_validate(data[key] or {}).to_json()
        except ValidationError as e:
            raise AutomationError(f"Invalid {key}: {_validation_message(e)}") from e
    return normalized


def approval_outcome(
    approvals: list[dict[str, Any]],
    workflow: dict[str, Any],
) -> str:
    """Execution status after the approvals recorded so far."""
    if any(not entry.get("approved") for entry in approvals):
        return "rejected"

    if workflow.get("require_all"):
        approved_by = {entry["approver_id"] for entry in approvals if entry.get("approved")}
        required = set(workflow.get("approvers") or [])
        return "approved" if required <= approved_by else "awaiting_approval"

    return "approved" if approvals else "awaiting_approval"


# ============================================================
# Service
# ============================================================


class FollowupAutomationService:
    """
    Rule management for a tenant context, and rule processing.

    Without a context (scheduler jobs) processing covers the active rules of
    every tenant; each rule acts on its owner's follow-ups.
    """

    def __init__(
        self,
        db: AsyncSession,
        context: Optional[TenantContext] = None,
        ai_service: Optional[FollowupAIService] = None,
    ):
        self._db = db
        self._context = context
        self._repository = AutomationRepository(db, context)
        self._ai = ai_service or FollowupAIService()
        self._rolled_back = False

    @staticmethod
    def rule_context(rule: FollowupAutomationRule) -> TenantContext:
        return TenantContext(user_id=rule.user_id, organization_id=rule.organization_id)

    # ----------------------------------------------------------------
    # Rules
    # ----------------------------------------------------------------

    async def list_rules(self) -> list[FollowupAutomationRule]:
        return await self._repository.find_rules()

    async def get_rule(self, rule_id: UUID) -> FollowupAutomationRule:
        rule = await self._repository.get_rule(rule_id)
        if rule is None:
            raise AutomationNotFoundError(f"Automation rule {rule_id} not found")
        return rule

    async def create_rule(self, data: dict[str, Any]) -> FollowupAutomationRule:
        if self._context is None:
            raise AutomationError("Creating a rule needs a tenant context")
        data = normalize_rule_data(data)

        rule = FollowupAutomationRule(**data, **self._context.owner_fields())
        rule = await self._repository.add_rule(rule)
        logger.info(f"Automation rule created: {rule.name} ({rule.id})")
        return rule

    async def update_rule(self, rule_id: UUID, data: dict[str, Any]) -> FollowupAutomationRule:
        rule = await self.get_rule(rule_id)
        data = normalize_rule_data(data)

        for key, value in data.items():
            setattr(rule, key, value)
        return await self._repository.save_rule(rule)

    async def delete_rule(self, rule_id: UUID) -> None:
        rule = await self.get_rule(rule_id)
        await self._repository.delete_rule(rule)

    # ----------------------------------------------------------------
    # Processing
    # ----------------------------------------------------------------

    async def process_automation_rules(self, now: Optional[datetime] = None) -> dict[str, int]:
        """Apply every active rule in scope to the follow-ups it matches."""
        now = now or utcnow()
        summary = {"rules": 0, "matched": 0, "executed": 0, "skipped": 0, "failed": 0}

        for rule in await self._repository.find_rules(active_only=True):
            summary["rules"] += 1
            rule_id = None
            try:
                await self._reload(rule)
                rule_id = rule.id
                await self._process_rule(rule, now, summary)
            except Exception:
                logger.exception(f"Automation rule {rule_id} could not be processed")
                await self._rollback()
                summary["failed"] += 1

        if summary["rules"]:
            logger.info(f"Automation run: {summary}")
        return summary

    async def _rollback(self) -> None:
        await self._db.rollback()
        self._rolled_back = True

    async def _reload(self, entity) -> None:
        """Reload a row expired by a rollback earlier in this run."""
        if self._rolled_back:
            await self._db.refresh(entity)

    async def _process_rule(self, rule: FollowupAutomationRule, now: datetime, summary: dict[str, int]) -> None:
        conditions = rule.trigger_conditions or {}
        followups = await FollowupRepository(self._db, self.rule_context(rule)).find_open()

        for followup in followups:
            await self._reload(followup)
            if not matches_trigger(followup, conditions, now):
                continue
            summary["matched"] += 1

            if await self._should_skip(rule, followup):
                summary["skipped"] += 1
                continue

            execution = await self._execute(rule, followup, now)
            summary["failed" if execution.status == "failed" else "executed"] += 1

    async def _should_skip(self, rule: FollowupAutomationRule, followup: EmailFollowup) -> bool:
        executions = await self._repository.executions_for(rule.id, followup.id)
        if any(execution.status in IN_FLIGHT_EXECUTION_STATUSES for execution in executions):
            return True
        return len(executions) >= rule.settings["max_attempts"]

    @staticmethod
    def _draft_options(rule: FollowupAutomationRule) -> FollowupDraftOptions:
        preferences = {key: value for key, value in rule.preferences.items() if value is not None}
        return FollowupDraftOptions(**preferences)

    async def _execute(
        self,
        rule: FollowupAutomationRule,
        followup: EmailFollowup,
        now: datetime,
    ) -> FollowupAutomationExecution:
        settings = rule.settings
        execution = await self._repository.add_execution(
            FollowupAutomationExecution(
                rule_id=rule.id,
                followup_id=followup.id,
                user_id=rule.user_id,
                organization_id=rule.organization_id,
                status="pending",
                approvals=[],
            )
        )

        try:
            if settings["auto_generate_draft"]:
                execution.status = "generating"
                await self._repository.save_execution(execution)

                draft = await self._ai.generate_draft(draft_context_for(followup, now), self._draft_options(rule))
                execution.draft_subject = draft.subject
                execution.draft_body = draft.body
                execution.draft_confidence = draft.confidence

            if settings["require_approval"]:
                execution.status = "awaiting_approval"
                execution.approval_deadline = now + timedelta(hours=rule.workflow["timeout_hours"])
            elif settings["auto_send"]:
                await self._send(execution, rule, now)
            else:
                execution.status = "pending"
        except Exception as e:
            logger.exception(f"Automation rule {rule.id} failed on follow-up {followup.id}")
            await self._rollback()
            await self._db.refresh(execution)
            await self._db.refresh(rule)
            execution.status = "failed"
            execution.error_message = str(e)

        rule.execution_count = (rule.execution_count or 0) + 1
        rule.last_executed_at = now
        await self._repository.save_rule(rule)
        return await self._repository.save_execution(execution)

    async def _send(self, execution: FollowupAutomationExecution, rule: FollowupAutomationRule, now: datetime):
        """Mark the follow-up as sent and the execution as delivered."""
        await FollowupService(self._db, self.rule_context(rule)).mark_sent(execution.followup_id, sent_at=now)
        execution.status = "sent"
        execution.executed_at = now
        rule.success_count = (rule.success_count or 0) + 1
        logger.info(f"Automated follow-up sent for execution {execution.id}")

    # ----------------------------------------------------------------
    # Approvals
    # ----------------------------------------------------------------

    async def process_approval(
        self,
        execution_id: UUID,
        approver_id: UUID,
        approved: bool,
        comment: Optional[str] = None,
    ) -> FollowupAutomationExecution:
        """
        Record an approval decision.

        Raises:
            AutomationNotFoundError: Unknown execution in this scope
            AutomationError: Execution is not awaiting approval
            AutomationPermissionError: Approver is neither listed nor the rule owner
        """
        execution = await self._repository.get_execution(execution_id)
        if execution is None:
            raise AutomationNotFoundError(f"Execution {execution_id} not found")
        rule = execution.rule

        if execution.status != "awaiting_approval":
            raise AutomationError(f"Execution is {execution.status}, not awaiting approval")

        workflow = rule.workflow
        approvers = [str(approver) for approver in workflow.get("approvers") or []]
        if approvers and str(approver_id) not in approvers and approver_id != rule.user_id:
            raise AutomationPermissionError("You are not an approver for this rule")

        now = utcnow()
        execution.approvals = [
            *(execution.approvals or []),
            {"approver_id": str(approver_id), "approved": approved, "comment": comment, "at": now.isoformat()},
        ]
        execution.status = approval_outcome(execution.approvals, {**workflow, "approvers": approvers})

        if execution.status == "approved" and rule.settings["auto_send"]:
            await self._send(execution, rule, now)
            await self._repository.save_rule(rule)

        logger.info(f"Execution {execution.id} {'approved' if approved else 'rejected'} by {approver_id}")
        return await self._repository.save_execution(execution)

    async def expire_approvals(self, now: Optional[datetime] = None) -> int:
        """Apply the fallback action to executions whose approval deadline passed."""
        now = now or utcnow()
        expired = await self._repository.find_expired_approvals(now)

        for execution in expired:
            rule = execution.rule
            if rule.workflow.get("fallback_action") == "send":
                await self._send(execution, rule, now)
                await self._repository.save_rule(rule)
            else:
                execution.status = "skipped"
                execution.error_message = "Approval timed out"
            await self._repository.save_execution(execution)

        if expired:
            logger.info(f"Expired {len(expired)} approval(s)")
        return len(expired)

    # ----------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------

    async def list_executions(
        self,
        status: Optional[str] = None,
        rule_id: Optional[UUID] = None,
        limit: int = 50,
    ) -> list[FollowupAutomationExecution]:
        return await self._repository.find_executions(status=status, rule_id=rule_id, limit=limit)

    async def get_stats(self) -> dict[str, Any]:
        rules = await self._repository.find_rules()
        counts = await self._repository.execution_status_counts()
        sent = await self._repository.sent_executions()

        total_executions = sum(counts.values())
        sent_count = counts.get("sent", 0)
        response_hours = [
            (execution.executed_at - execution.created_at).total_seconds() / 3600
            for execution in sent
            if execution.executed_at and execution.created_at
        ]

        return {
            "total_rules": len(rules),
            "active_rules": sum(1 for rule in rules if rule.is_active),
            "total_executions": total_executions,
            "pending_approvals": counts.get("awaiting_approval", 0),
            "success_rate": round(sent_count / total_executions * 100, 2) if total_executions else 0,
            "avg_response_time": round(sum(response_hours) / len(response_hours), 2) if response_hours else 0,
            "cost_savings": round(sent_count * COST_SAVED_PER_SEND, 2),
            "time_savings": sent_count * MINUTES_SAVED_PER_SEND,
        }
