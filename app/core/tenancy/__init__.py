# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Tenant scoping shared by repositories, services and routes.
# Tenant-Aware: Yes - this module IS the tenant-isolation mechanism.
# ============================================================================
"""
Tenancy module.

- TenantContext: caller + selected organization, applied to every query
"""

from .context import TenantContext

__all__ = [
    "TenantContext",
]
