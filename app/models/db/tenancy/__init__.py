# ============================================================================
# SCOPE: MULTI-TENANT
# Description: SQLAlchemy models for organizations and memberships.
# Tenant-Aware: Yes - these tables define the tenant boundary.
# ============================================================================
"""
Tenancy models.

- Organization: Tenant/company entity with branding
- OrganizationMember: User membership and role in an organization
- UserPreferences: Per-user settings, including the selected organization
"""

from .organization import Organization
from .organization_member import MEMBER_ROLES, OrganizationMember
from .user_preferences import UserPreferences

__all__ = [
    "MEMBER_ROLES",
    "Organization",
    "OrganizationMember",
    "UserPreferences",
]
