"""
Repositories Module

Async data access over the core, crm and ai schemas. Tenant-owned tables are
queried through TenantContext.
"""

from .automation_repository import AutomationRepository
from .base import TenantScopedRepository
from .crm_repository import ContactRepository, ProductRepository, SupplierRepository
from .email_repository import EmailAccountRepository, EmailRepository
from .followup_repository import FollowupReminderRepository, FollowupRepository, FollowupSettingsRepository
from .organization_repository import OrganizationRepository
from .redis_repository import RedisRepository
from .smart_folder_repository import SmartFolderRepository
from .transparency_repository import TransparencyRepository
from .user_repository import UserRepository

__all__ = [
    "AutomationRepository",
    "ContactRepository",
    "EmailAccountRepository",
    "EmailRepository",
    "FollowupReminderRepository",
    "FollowupRepository",
    "FollowupSettingsRepository",
    "OrganizationRepository",
    "ProductRepository",
    "RedisRepository",
    "SmartFolderRepository",
    "SupplierRepository",
    "TenantScopedRepository",
    "TransparencyRepository",
    "UserRepository",
]
