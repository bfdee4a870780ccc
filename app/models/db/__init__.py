"""
Database models package - Organized by responsibility
"""

from .automation import FollowupAutomationExecution, FollowupAutomationRule
from .base import Base, TenantOwnedMixin, TimestampMixin
from .crm import Contact, Product, Supplier
from .email import Email, EmailAccount
from .followups import EmailFollowup, FollowupReminder, FollowupSettings, SmartFolder
from .tenancy import Organization, OrganizationMember, UserPreferences
from .transparency import AgentActivity, AgentSetting, AgentThought, AIMemory
from .user import UserDB

__all__ = [
    # Base
    "Base",
    "TenantOwnedMixin",
    "TimestampMixin",
    # Authentication
    "UserDB",
    # Tenancy
    "Organization",
    "OrganizationMember",
    "UserPreferences",
    # CRM
    "Contact",
    "Product",
    "Supplier",
    # Email
    "Email",
    "EmailAccount",
    # Follow-ups
    "EmailFollowup",
    "FollowupReminder",
    "FollowupSettings",
    "SmartFolder",
    # Automation
    "FollowupAutomationExecution",
    "FollowupAutomationRule",
    # AI transparency
    "AgentActivity",
    "AgentSetting",
    "AgentThought",
    "AIMemory",
]
