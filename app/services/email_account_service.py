"""
Email account service: mailbox CRUD, sync policy and IMAP connection checks.
"""

import asyncio
import imaplib
import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tenancy import TenantContext
from app.models.db.email import EmailAccount
from app.repositories.email_repository import EmailAccountRepository
from app.services.encryption_service import CredentialEncryptionService, get_encryption_service

logger = logging.getLogger(__name__)

IMAP_TIMEOUT_SECONDS = 15

FULL_SYNC_AMOUNTS = {"inbox": 5000, "sent": 5000}
INCREMENTAL_SYNC_AMOUNTS = {"inbox": 2000, "sent": 2000}


class EmailAccountError(Exception):
    """Raised for invalid account operations (duplicate mailbox, missing IMAP data)."""

    pass


class EmailAccountNotFoundError(EmailAccountError):
    pass


def polling_interval(provider_type: str | None) -> int:
    """Minutes between mailbox polls for a provider."""
    provider = (provider_type or "").lower()
    if provider in ("microsoft", "outlook"):
        return 5
    if provider in ("google", "gmail"):
        return 3
    if provider == "imap":
        return 2
    return 5


def sync_amounts(account: EmailAccount | None) -> dict[str, int]:
    """Messages to fetch per folder: a full window until the first full sync, then incremental."""
    if account is None or account.last_full_sync_at is None:
        return dict(FULL_SYNC_AMOUNTS)
    return dict(INCREMENTAL_SYNC_AMOUNTS)


def _imap_login(host: str, port: int, username: str, password: str) -> None:
    connection = imaplib.IMAP4_SSL(host, port, timeout=IMAP_TIMEOUT_SECONDS)
    try:
        connection.login(username, password)
        connection.select("INBOX", readonly=True)
    finally:
        try:
            connection.logout()
        except (imaplib.IMAP4.error, OSError):
            pass


class EmailAccountService:
    def __init__(
        self,
        db: AsyncSession,
        context: TenantContext,
        encryption: CredentialEncryptionService | None = None,
    ):
        self._db = db
        self._repository = EmailAccountRepository(db, context)
        self._encryption = encryption or get_encryption_service()

    async def list_accounts(self, limit: int = 50, offset: int = 0) -> list[EmailAccount]:
        return await self._repository.find_all(limit=limit, offset=offset)

    async def get_account(self, account_id: UUID) -> EmailAccount:
        account = await self._repository.get_by_id(account_id)
        if account is None:
            raise EmailAccountNotFoundError(f"Email account {account_id} not found")
        return account

    async def create_account(self, data: dict[str, Any]) -> EmailAccount:
        """
        Connect a mailbox. An IMAP password is stored encrypted.

        Raises:
            EmailAccountError: If the mailbox is already connected
            CredentialEncryptionError: If the password cannot be encrypted
        """
        fields = dict(data)
        fields["email"] = fields["email"].lower()
        if await self._repository.get_by_email(fields["email"]):
            raise EmailAccountError(f"Email account {fields['email']} is already connected")

        password = fields.pop("password", None)
        if password:
            fields["password_encrypted"] = await self._encryption.encrypt_value(self._db, password)

        account = await self._repository.create(fields)
        logger.info(f"Email account connected: {account.email} ({account.provider_type})")
        return account

    async def update_account(self, account_id: UUID, data: dict[str, Any]) -> EmailAccount:
        account = await self.get_account(account_id)
        fields = dict(data)

        password = fields.pop("password", None)
        if password:
            fields["password_encrypted"] = await self._encryption.encrypt_value(self._db, password)

        return await self._repository.update(account, fields)

    async def delete_account(self, account_id: UUID) -> None:
        account = await self.get_account(account_id)
        await self._repository.delete(account)
        logger.info(f"Email account removed: {account.email}")

    async def setup_status(self, account_id: UUID) -> dict[str, Any]:
        account = await self.get_account(account_id)
        return {
            "account_id": str(account.id),
            "setup_completed": account.setup_completed,
            "polling_interval_minutes": polling_interval(account.provider_type),
            "sync_amounts": sync_amounts(account),
            "last_sync_at": account.last_sync_at.isoformat() if account.last_sync_at else None,
            "last_full_sync_at": account.last_full_sync_at.isoformat() if account.last_full_sync_at else None,
            "sync_error": account.sync_error,
        }

    async def test_connection(self, account_id: UUID) -> dict[str, Any]:
        """
        Log in to the IMAP server with the stored credentials.

        OAuth providers are not checked here; they report success when the
        account exists.
        """
        account = await self.get_account(account_id)

        if account.provider_type != "imap":
            return {"success": True, "provider_type": account.provider_type, "message": "OAuth account"}

        if not (account.imap_host and account.password_encrypted):
            raise EmailAccountError("IMAP host and password are required to test the connection")

        password = await self._encryption.decrypt_value(self._db, account.password_encrypted)
        try:
            await asyncio.to_thread(
                _imap_login,
                account.imap_host,
                account.imap_port or 993,
                account.username or account.email,
                password,
            )
        except (imaplib.IMAP4.error, OSError) as e:
            logger.warning(f"IMAP connection test failed for {account.email}: {e}")
            await self._repository.update(account, {"sync_error": str(e)})
            return {"success": False, "provider_type": "imap", "message": str(e)}

        await self._repository.update(account, {"sync_error": None})
        return {"success": True, "provider_type": "imap", "message": "Connection successful"}
