from fastapi import APIRouter

from app.api.routes import (
    auth,
    automation,
    crm,
    email_accounts,
    emails,
    followups,
    members,
    organizations,
    smart_folders,
    transparency,
    users,
)

api_router = APIRouter()

# API routes (all have /api/v1 prefix from app_factory)
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(organizations.router, prefix="/organizations")
api_router.include_router(members.router, prefix="/organizations")

# CRM records
api_router.include_router(crm.contacts_router, prefix="/contacts")
api_router.include_router(crm.products_router, prefix="/products")
api_router.include_router(crm.suppliers_router, prefix="/suppliers")

# Email
api_router.include_router(email_accounts.router, prefix="/email-accounts")
api_router.include_router(emails.router, prefix="/emails")

# Follow-ups: sub-resources go first so /followups/{followup_id} does not shadow them
api_router.include_router(smart_folders.router, prefix="/followups/smart-folders")
api_router.include_router(automation.router, prefix="/followups/automation")
api_router.include_router(followups.router, prefix="/followups")

# AI
api_router.include_router(transparency.router, prefix="/ai/transparency")
