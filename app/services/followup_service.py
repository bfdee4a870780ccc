"""
Follow-up Service - tracking of sent emails that are waiting for a response.

Lifecycle of a follow-up:

    pending --(due date)--> due --(overdue window)--> overdue
       |                     |                          |
       +---------------------+--------------------------+--> completed / cancelled

Status moves with time (refresh_statuses, run by the scheduler) and ends
when a response arrives (detect_responses), when the user sends the
follow-up or marks it done, or when it is cancelled. Snoozing puts it back
to pending with a new due date.
"""

import logging
import re
from datetime import datetime, timedelta
from email.utils import parseaddr
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings
from app.core.tenancy import TenantContext
from app.models.db.base import as_utc, utcnow
from app.models.db.email import Email
from app.models.db.followups import (
    FOLLOWUP_PRIORITIES,
    FOLLOWUP_STATUSES,
    EmailFollowup,
    FollowupReminder,
)
from app.repositories.followup_repository import (
    FollowupReminderRepository,
    FollowupRepository,
    FollowupSettingsRepository,
)

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "cancelled")
FOLLOWUP_ACTIONS = ("complete", "sent", "snooze", "cancel")

REPLY_PATTERN = re.compile(r"^(re:|fwd?:|fw:)", re.IGNORECASE)
AUTO_REPLY_PATTERNS = [
    re.compile(r"out of office", re.IGNORECASE),
    re.compile(r"automatic reply", re.IGNORECASE),
    re.compile(r"auto.?reply", re.IGNORECASE),
    re.compile(r"vacation", re.IGNORECASE),
    re.compile(r"away", re.IGNORECASE),
    re.compile(r"unsubscribe", re.IGNORECASE),
]
SUBJECT_PREFIX = re.compile(r"^\s*((re|fwd?|fw)\s*:\s*)+", re.IGNORECASE)

DEFAULT_FOLLOWUP_SETTINGS = {
    "auto_followup_enabled": True,
    "default_followup_days": 3,
    "default_priority": "medium",
    "max_followups_per_contact": 3,
    "exclude_replies": True,
    "enable_notifications": True,
}


# ============================================================
# Exceptions
# ============================================================


class FollowupServiceError(Exception):
    """Base exception for follow-up operations."""

    pass


class FollowupNotFoundError(FollowupServiceError):
    pass


class InvalidFollowupActionError(FollowupServiceError):
    """Unknown action, bad status or a snooze date that is not in the future."""

    pass


# ============================================================
# Pure helpers
# ============================================================


def compute_due_at(sent_at: datetime, follow_up_days: int) -> datetime:
    return sent_at + timedelta(days=follow_up_days)


def derive_status(followup: EmailFollowup, now: datetime, overdue_after: timedelta | None = None) -> str:
    """
    Status a follow-up should have at `now`.

    completed and cancelled are final. Before the due date it is pending,
    inside the overdue window it is due, after that overdue.
    """
    if followup.status in TERMINAL_STATUSES:
        return followup.status

    if overdue_after is None:
        overdue_after = timedelta(hours=get_settings().FOLLOWUP_OVERDUE_AFTER_HOURS)

    due_at = followup.follow_up_due_at
    if now < due_at:
        return "pending"
    if now < due_at + overdue_after:
        return "due"
    return "overdue"


def is_reply_subject(subject: str | None) -> bool:
    return bool(REPLY_PATTERN.match((subject or "").strip()))


def is_auto_reply_subject(subject: str | None) -> bool:
    """Out-of-office, vacation and similar machine-generated subjects."""
    subject = subject or ""
    return any(pattern.search(subject) for pattern in AUTO_REPLY_PATTERNS)


def normalize_subject(subject: str | None) -> str:
    """Subject without Re:/Fwd: prefixes, lowercased, whitespace collapsed."""
    stripped = SUBJECT_PREFIX.sub("", subject or "")
    return " ".join(stripped.lower().split())


def address_of(value: str | None) -> str:
    return parseaddr(value or "")[1].lower()


def is_response_to(followup: EmailFollowup, tracked: Email | None, received: Email) -> bool:
    """
    Whether `received` answers the email tracked by `followup`.

    Matches by thread, by In-Reply-To, or by normalized subject when the
    sender was one of the original recipients.
    """
    if tracked is not None:
        if tracked.thread_id and received.thread_id and tracked.thread_id == received.thread_id:
            return True
        if tracked.message_id and received.in_reply_to and tracked.message_id == received.in_reply_to:
            return True

    recipients = {address_of(recipient) for recipient in followup.original_recipients or []}
    if address_of(received.sender) not in recipients:
        return False
    return normalize_subject(followup.original_subject) == normalize_subject(received.subject)


# ============================================================
# Service
# ============================================================


class FollowupService:
    """
    Follow-up operations for one tenant context.

    Built without a context (scheduler jobs) the status refresh and reminder
    dispatch span every tenant.
    """

    def __init__(self, db: AsyncSession, context: TenantContext | None = None):
        self._context = context
        self._followups = FollowupRepository(db, context)
        self._reminders = FollowupReminderRepository(db)
        self._settings = FollowupSettingsRepository(db)
        self._config = get_settings()

    @property
    def overdue_after(self) -> timedelta:
        return timedelta(hours=self._config.FOLLOWUP_OVERDUE_AFTER_HOURS)

    def _require_context(self) -> TenantContext:
        if self._context is None:
            raise FollowupServiceError("This operation needs a tenant context")
        return self._context

    # ----------------------------------------------------------------
    # Create and read
    # ----------------------------------------------------------------

    async def create_followup(
        self,
        original_subject: str,
        original_recipients: list[str],
        original_sent_at: datetime,
        follow_up_days: int | None = None,
        priority: str = "medium",
        follow_up_type: str = "manual",
        email_id: UUID | None = None,
        notes: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> EmailFollowup:
        """Create a pending follow-up plus its dashboard reminder at the due time."""
        context = self._require_context()
        if priority not in FOLLOWUP_PRIORITIES:
            raise InvalidFollowupActionError(f"Invalid priority: {priority}")

        original_sent_at = as_utc(original_sent_at)
        days = follow_up_days if follow_up_days is not None else self._config.FOLLOWUP_DEFAULT_DAYS
        due_at = compute_due_at(original_sent_at, days)

        followup = await self._followups.add(
            EmailFollowup(
                email_id=email_id,
                original_subject=original_subject,
                original_recipients=list(original_recipients),
                original_sent_at=original_sent_at,
                follow_up_days=days,
                follow_up_due_at=due_at,
                status="pending",
                priority=priority,
                follow_up_type=follow_up_type,
                reminder_count=0,
                notes=notes,
                extra_metadata=metadata or {},
                **context.owner_fields(),
            )
        )

        await self._reminders.add(
            FollowupReminder(
                followup_id=followup.id,
                user_id=followup.user_id,
                reminder_type="dashboard",
                reminder_time=due_at,
                status="pending",
                title=f"Follow-up due: {original_subject}",
                message=f'No response received to your email "{original_subject}". Consider sending a follow-up.',
                extra_metadata={},
            )
        )

        logger.info(f"Follow-up {followup.id} created, due {due_at.isoformat()}")
        return followup

    async def get_followups(
        self,
        statuses: list[str] | None = None,
        priorities: list[str] | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[EmailFollowup]:
        return await self._followups.find(statuses=statuses, priorities=priorities, limit=limit, offset=offset)

    async def get_due_followups(self, limit: int = 50) -> list[EmailFollowup]:
        return await self._followups.find(statuses=["due", "overdue"], limit=limit)

    async def get_followup(self, followup_id: UUID) -> EmailFollowup:
        followup = await self._followups.get_by_id(followup_id)
        if followup is None:
            raise FollowupNotFoundError(f"Follow-up {followup_id} not found")
        return followup

    async def get_by_email_id(self, email_id: UUID) -> EmailFollowup | None:
        return await self._followups.get_by_email_id(email_id)

    # ----------------------------------------------------------------
    # Status changes
    # ----------------------------------------------------------------

    async def update_status(self, followup_id: UUID, status: str, **fields) -> EmailFollowup:
        if status not in FOLLOWUP_STATUSES:
            raise InvalidFollowupActionError(f"Invalid status: {status}")

        followup = await self.get_followup(followup_id)
        followup.status = status
        for key, value in fields.items():
            setattr(followup, key, value)
        followup = await self._followups.save(followup)

        if status in TERMINAL_STATUSES:
            await self._reminders.cancel_pending_for([followup.id])
        return followup

    async def mark_completed(self, followup_id: UUID, response_received_at: datetime | None = None) -> EmailFollowup:
        return await self.update_status(
            followup_id, "completed", response_received_at=response_received_at or utcnow()
        )

    async def mark_sent(self, followup_id: UUID, sent_at: datetime | None = None) -> EmailFollowup:
        return await self.update_status(followup_id, "completed", follow_up_sent_at=sent_at or utcnow())

    async def cancel(self, followup_id: UUID) -> EmailFollowup:
        return await self.update_status(followup_id, "cancelled")

    async def snooze(self, followup_id: UUID, until: datetime | None, now: datetime | None = None) -> EmailFollowup:
        """Move the due date to `until` and start the reminder cycle again."""
        now = now or utcnow()
        if until is not None:
            until = as_utc(until)
        if until is None or until <= now:
            raise InvalidFollowupActionError("snoozeUntil must be a future date")

        return await self.update_status(
            followup_id,
            "pending",
            follow_up_due_at=until,
            reminder_count=0,
            last_reminder_at=None,
        )

    async def apply_action(
        self,
        followup_id: UUID,
        action: str,
        snooze_until: datetime | None = None,
    ) -> EmailFollowup:
        """Dispatch a PUT /followups/{id} action."""
        if action == "complete":
            return await self.mark_completed(followup_id)
        if action == "sent":
            return await self.mark_sent(followup_id)
        if action == "snooze":
            return await self.snooze(followup_id, snooze_until)
        if action == "cancel":
            return await self.cancel(followup_id)
        raise InvalidFollowupActionError(f"Unknown action: {action}")

    async def update_details(self, followup_id: UUID, data: dict[str, Any]) -> EmailFollowup:
        """Edit notes, priority or the follow-up delay of an open follow-up."""
        followup = await self.get_followup(followup_id)

        if "priority" in data and data["priority"] not in FOLLOWUP_PRIORITIES:
            raise InvalidFollowupActionError(f"Invalid priority: {data['priority']}")
        if "follow_up_days" in data and followup.is_open:
            followup.follow_up_due_at = compute_due_at(followup.original_sent_at, data["follow_up_days"])
            followup.status = derive_status(followup, utcnow(), self.overdue_after)

        for key in ("notes", "priority", "follow_up_days"):
            if key in data:
                setattr(followup, key, data[key])
        return await self._followups.save(followup)

    async def bulk_update(self, followup_ids: list[UUID], status: str) -> int:
        if status not in FOLLOWUP_STATUSES:
            raise InvalidFollowupActionError(f"Invalid status: {status}")
        if not followup_ids:
            return 0

        updated = await self._followups.bulk_update_status(followup_ids, status)
        if updated and status in TERMINAL_STATUSES:
            await self._reminders.cancel_pending_for(updated)

        logger.info(f"Bulk update: {len(updated)} follow-ups set to {status}")
        return len(updated)

    async def refresh_statuses(self, now: datetime | None = None) -> int:
        """Re-derive the status of every open follow-up in scope. Returns how many changed."""
        now = now or utcnow()
        changed = 0

        for followup in await self._followups.find_open():
            status = derive_status(followup, now, self.overdue_after)
            if status != followup.status:
                followup.status = status
                followup.updated_at = now
                changed += 1

        if changed:
            await self._followups.save_all()
            logger.info(f"Follow-up status refresh: {changed} changed")
        return changed

    # ----------------------------------------------------------------
    # Stats
    # ----------------------------------------------------------------

    async def get_stats(self) -> dict[str, Any]:
        counts = await self._followups.status_counts()
        total = sum(counts.values())
        responded = await self._followups.count_responded() if total else 0

        return {
            "total_followups": total,
            "pending_followups": counts.get("pending", 0),
            "due_followups": counts.get("due", 0),
            "overdue_followups": counts.get("overdue", 0),
            "completed_followups": counts.get("completed", 0),
            "cancelled_followups": counts.get("cancelled", 0),
            "response_rate": round(responded / total * 100, 2) if total else 0,
        }

    # ----------------------------------------------------------------
    # Settings
    # ----------------------------------------------------------------

    async def get_settings(self, user_id: UUID | None = None) -> dict[str, Any]:
        user_id = user_id or self._require_context().user_id
        settings = await self._settings.get(user_id)
        if settings is None:
            return {**DEFAULT_FOLLOWUP_SETTINGS, "default_followup_days": self._config.FOLLOWUP_DEFAULT_DAYS}
        return settings.to_dict()

    async def update_settings(self, data: dict[str, Any]) -> dict[str, Any]:
        if "default_priority" in data and data["default_priority"] not in FOLLOWUP_PRIORITIES:
            raise InvalidFollowupActionError(f"Invalid priority: {data['default_priority']}")

        context = self._require_context()
        current = await self.get_settings(context.user_id)
        settings = await self._settings.upsert(context.user_id, **{**current, **data})
        return settings.to_dict()

    # ----------------------------------------------------------------
    # Email tracking
    # ----------------------------------------------------------------

    async def track_sent_email(self, email: Email) -> EmailFollowup | None:
        """
        Start an automatic follow-up for a sent email when the user's settings allow it.

        Skipped for auto-reply subjects, for replies and forwards when
        exclude_replies is on, and when any recipient already has
        max_followups_per_contact open follow-ups.
        """
        settings = await self.get_settings(email.user_id)

        if not settings["auto_followup_enabled"]:
            return None
        if is_auto_reply_subject(email.subject):
            logger.debug(f"Not tracking auto-reply subject: {email.subject}")
            return None
        if settings["exclude_replies"] and is_reply_subject(email.subject):
            return None

        recipients = [address_of(recipient) or recipient for recipient in email.recipients or []]
        if not recipients:
            return None

        open_count = await self._followups.count_open_for_recipients(email.user_id, recipients)
        if open_count >= settings["max_followups_per_contact"]:
            logger.info(f"Follow-up limit reached for recipients of email {email.id}")
            return None

        return await self.create_followup(
            original_subject=email.subject,
            original_recipients=recipients,
            original_sent_at=email.sent_at,
            follow_up_days=settings["default_followup_days"],
            priority=settings["default_priority"],
            follow_up_type="auto",
            email_id=email.id,
            metadata={"auto_tracked": True, "tracking_enabled_at": utcnow().isoformat()},
        )

    async def detect_responses(self, received: Email) -> list[EmailFollowup]:
        """Complete every open follow-up of the recipient user that `received` answers."""
        closed = []
        for followup, tracked in await self._followups.find_open_with_emails(received.user_id):
            if not is_response_to(followup, tracked, received):
                continue
            followup.status = "completed"
            followup.response_received_at = received.sent_at or utcnow()
            followup.updated_at = utcnow()
            closed.append(followup)

        if closed:
            await self._followups.save_all()
            await self._reminders.cancel_pending_for([followup.id for followup in closed])
            logger.info(f"Email {received.id} closed {len(closed)} follow-up(s)")
        return closed

    # ----------------------------------------------------------------
    # Reminders
    # ----------------------------------------------------------------

    async def get_pending_reminders(
        self,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> list[FollowupReminder]:
        return await self._reminders.find_pending(now or utcnow(), user_id=user_id)

    async def mark_reminder_sent(self, reminder_id: UUID, user_id: UUID | None = None) -> FollowupReminder:
        reminder = await self._reminders.get_by_id(reminder_id, user_id=user_id)
        if reminder is None:
            raise FollowupNotFoundError(f"Reminder {reminder_id} not found")
        return await self._dispatch_reminder(reminder)

    async def _dispatch_reminder(self, reminder: FollowupReminder) -> FollowupReminder:
        now = utcnow()
        reminder.status = "sent"
        reminder.sent_at = now

        followup = reminder.followup
        if followup is not None:
            followup.reminder_count = (followup.reminder_count or 0) + 1
            followup.last_reminder_at = now

        return await self._reminders.save(reminder)

    async def dispatch_due_reminders(self) -> int:
        """Deliver every reminder whose time has come. Delivery is a log line."""
        reminders = await self.get_pending_reminders()
        for reminder in reminders:
            logger.info(f"Reminder [{reminder.reminder_type}] for user {reminder.user_id}: {reminder.title}")
            await self._dispatch_reminder(reminder)
        return len(reminders)
