"""
Email accounts API - connected mailboxes of the current user.
"""

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_tenant_context
from app.core.tenancy import TenantContext
from app.database.async_db import get_async_db
from app.services.email_account_service import EmailAccountError, EmailAccountNotFoundError, EmailAccountService
from app.services.encryption_service import CredentialEncryptionError

router = APIRouter(tags=["Email Accounts"])

Security = Literal["ssl", "starttls", "none"]


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================


class EmailAccountCreate(BaseModel):
    email: EmailStr
    display_name: str | None = Field(None, max_length=255)
    provider_type: Literal["google", "microsoft", "imap"]
    imap_host: str | None = Field(None, max_length=255)
    imap_port: int | None = Field(None, ge=1, le=65535)
    imap_security: Security | None = "ssl"
    smtp_host: str | None = Field(None, max_length=255)
    smtp_port: int | None = Field(None, ge=1, le=65535)
    smtp_security: Security | None = "starttls"
    username: str | None = Field(None, max_length=255)
    password: str | None = Field(None, description="IMAP password, stored encrypted")


class EmailAccountUpdate(BaseModel):
    display_name: str | None = Field(None, max_length=255)
    imap_host: str | None = Field(None, max_length=255)
    imap_port: int | None = Field(None, ge=1, le=65535)
    imap_security: Security | None = None
    smtp_host: str | None = Field(None, max_length=255)
    smtp_port: int | None = Field(None, ge=1, le=65535)
    smtp_security: Security | None = None
    username: str | None = Field(None, max_length=255)
    password: str | None = None
    is_active: bool | None = None
    setup_completed: bool | None = None


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, EmailAccountNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, CredentialEncryptionError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ============================================================
# ENDPOINTS
# ============================================================


@router.get("")
async def list_email_accounts(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    accounts = await EmailAccountService(db, context).list_accounts(limit=limit, offset=offset)
    return {"accounts": [account.to_dict() for account in accounts], "total": len(accounts)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_email_account(
    data: EmailAccountCreate,
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    if data.provider_type == "imap" and not data.imap_host:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="imap_host is required for IMAP accounts")

    try:
        account = await EmailAccountService(db, context).create_account(data.model_dump(exclude_none=True))
    except (EmailAccountError, CredentialEncryptionError) as e:
        raise _http_error(e) from e
    return account.to_dict()


@router.get("/{account_id}")
async def get_email_account(
    account_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        account = await EmailAccountService(db, context).get_account(account_id)
    except EmailAccountError as e:
        raise _http_error(e) from e
    return account.to_dict()


@router.put("/{account_id}")
async def update_email_account(
    data: EmailAccountUpdate,
    account_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        account = await EmailAccountService(db, context).update_account(account_id, data.model_dump(exclude_unset=True))
    except (EmailAccountError, CredentialEncryptionError) as e:
        raise _http_error(e) from e
    return account.to_dict()


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_email_account(
    account_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        await EmailAccountService(db, context).delete_account(account_id)
    except EmailAccountError as e:
        raise _http_error(e) from e


@router.get("/{account_id}/setup-status")
async def get_setup_status(
    account_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    """Setup state, polling interval and how many messages the next sync fetches."""
    try:
        return await EmailAccountService(db, context).setup_status(account_id)
    except EmailAccountError as e:
        raise _http_error(e) from e


@router.post("/{account_id}/test-connection")
async def test_connection(
    account_id: uuid.UUID = Path(...),  # noqa: B008
    context: TenantContext = Depends(get_tenant_context),  # noqa: B008
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
):
    try:
        return await EmailAccountService(db, context).test_connection(account_id)
    except (EmailAccountError, CredentialEncryptionError) as e:
        raise _http_error(e) from e
