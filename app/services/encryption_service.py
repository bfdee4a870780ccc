# ============================================================================
# SCOPE: INFRASTRUCTURE
# Description: pgcrypto symmetric encryption for stored mailbox credentials.
# ============================================================================
"""
Credential Encryption Service - IMAP/SMTP passwords encrypted with pgcrypto.

The database does the work (pgp_sym_encrypt / pgp_sym_decrypt); values are
stored base64-encoded in crm.email_accounts.password_encrypted. The key comes
from CREDENTIAL_ENCRYPTION_KEY and never appears in logs.

Usage:
    service = get_encryption_service()
    account.password_encrypted = await service.encrypt_value(db, password)
    password = await service.decrypt_value(db, account.password_encrypted)
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings

logger = logging.getLogger(__name__)


class CredentialEncryptionError(Exception):
    """Raised when a credential cannot be encrypted or decrypted."""

    pass


class CredentialEncryptionService:
    """Encrypts and decrypts credential strings through pgcrypto."""

    def __init__(self, key: str | None = None) -> None:
        self._encryption_key = key

    @property
    def encryption_key(self) -> str:
        """
        Raises:
            CredentialEncryptionError: If CREDENTIAL_ENCRYPTION_KEY is not set
        """
        if self._encryption_key is None:
            key = get_settings().CREDENTIAL_ENCRYPTION_KEY
            if not key:
                raise CredentialEncryptionError("CREDENTIAL_ENCRYPTION_KEY is not configured")
            self._encryption_key = key
        return self._encryption_key

    async def encrypt_value(self, db: AsyncSession, value: str) -> str:
        """Return the base64 pgcrypto ciphertext of value."""
        try:
            result = await db.execute(
                text("SELECT encode(pgp_sym_encrypt(:value, :key), 'base64')"),
                {"value": value, "key": self.encryption_key},
            )
            encrypted = result.scalar()
        except CredentialEncryptionError:
            raise
        except Exception as e:
            logger.error(f"Credential encryption failed: {type(e).__name__}")
            raise CredentialEncryptionError("Failed to encrypt credential") from e

        if encrypted is None:
            raise CredentialEncryptionError("pgcrypto encryption returned NULL")
        return encrypted

    async def decrypt_value(self, db: AsyncSession, encrypted: str) -> str:
        """Return the plain text of a value produced by encrypt_value."""
        try:
            result = await db.execute(
                text("SELECT pgp_sym_decrypt(decode(:encrypted, 'base64'), :key)"),
                {"encrypted": encrypted, "key": self.encryption_key},
            )
            decrypted = result.scalar()
        except CredentialEncryptionError:
            raise
        except Exception as e:
            logger.error(f"Credential decryption failed: {type(e).__name__}")
            raise CredentialEncryptionError("Failed to decrypt credential") from e

        if decrypted is None:
            raise CredentialEncryptionError("pgcrypto decryption returned NULL (wrong key?)")
        return decrypted


_encryption_service: CredentialEncryptionService | None = None


def get_encryption_service() -> CredentialEncryptionService:
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = CredentialEncryptionService()
    return _encryption_service
