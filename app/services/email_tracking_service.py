"""
Records sent and received emails and feeds them to follow-up tracking.

Sent emails may start an automatic follow-up; received emails close the
follow-ups they answer.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tenancy import TenantContext
from app.models.db.email import Email
from app.models.db.followups import EmailFollowup
from app.repositories.email_repository import EmailAccountRepository, EmailRepository
from app.services.email_account_service import EmailAccountNotFoundError
from app.services.followup_service import FollowupService

logger = logging.getLogger(__name__)


class EmailTrackingService:
    def __init__(self, db: AsyncSession, context: TenantContext):
        self._emails = EmailRepository(db, context)
        self._accounts = EmailAccountRepository(db, context)
        self._followups = FollowupService(db, context)

    async def _record(self, direction: str, data: dict[str, Any]) -> Email:
        account_id = data.get("email_account_id")
        if account_id and await self._accounts.get_by_id(account_id) is None:
            raise EmailAccountNotFoundError(f"Email account {account_id} not found")

        if data.get("message_id"):
            existing = await self._emails.get_by_message_id(data["message_id"])
            if existing is not None:
                return existing

        return await self._emails.create({**data, "direction": direction})

    async def record_sent(self, data: dict[str, Any]) -> tuple[Email, EmailFollowup | None]:
        email = await self._record("sent", data)
        followup = await self._followups.get_by_email_id(email.id)
        if followup is None:
            followup = await self._followups.track_sent_email(email)
        return email, followup

    async def record_received(self, data: dict[str, Any]) -> tuple[Email, list[EmailFollowup]]:
        email = await self._record("received", data)
        closed = await self._followups.detect_responses(email)
        return email, closed

    async def list_emails(self, direction: str | None = None, limit: int = 50, offset: int = 0) -> list[Email]:
        return await self._emails.find_by_direction(direction, limit=limit, offset=offset)
