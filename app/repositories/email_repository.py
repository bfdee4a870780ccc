"""
Email account and email message repositories.
"""

import logging
from uuid import UUID

from sqlalchemy import select

from app.models.db.email import Email, EmailAccount
from app.repositories.base import TenantScopedRepository

logger = logging.getLogger(__name__)


class EmailAccountRepository(TenantScopedRepository[EmailAccount]):
    """
    Email accounts are personal: they are always filtered by the owner
    (user_id) on top of the organization scope.
    """

    model = EmailAccount
    search_columns = ("email", "display_name")
    order_by = ("email",)

    def _scoped_select(self):
        return super()._scoped_select().where(EmailAccount.user_id == self._context.user_id)

    async def get_by_email(self, email: str) -> EmailAccount | None:
        stmt = select(EmailAccount).where(
            EmailAccount.user_id == self._context.user_id,
            EmailAccount.email == email.lower(),
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()


class EmailRepository(TenantScopedRepository[Email]):
    model = Email
    search_columns = ("subject", "sender")
    order_by = ("-sent_at",)

    async def find_by_direction(self, direction: str | None, limit: int = 50, offset: int = 0) -> list[Email]:
        stmt = self._scoped_select()
        if direction:
            stmt = stmt.where(Email.direction == direction)
        stmt = stmt.order_by(Email.sent_at.desc()).limit(limit).offset(offset)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def get_by_message_id(self, message_id: str) -> Email | None:
        stmt = self._scoped_select().where(Email.message_id == message_id)
        result = await self._db.execute(stmt)
        return result.scalars().first()

    async def get_many(self, email_ids: list[UUID]) -> dict[UUID, Email]:
        if not email_ids:
            return {}
        stmt = select(Email).where(Email.id.in_(email_ids))
        result = await self._db.execute(stmt)
        return {email.id: email for email in result.scalars().all()}
