# ============================================================================
# SCOPE: MULTI-TENANT
# Description: Tenant scope of a request: the caller plus the organization
#              selected in the token (or in user_preferences).
# Tenant-Aware: Yes - every tenant-owned query is filtered through this.
# ============================================================================
"""
TenantContext - the scope every tenant-owned query runs in.

Usage:
    ctx = TenantContext(user_id=user.id, organization_id=org_id, role="admin")
    stmt = ctx.apply(select(Contact), Contact)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import Select


@dataclass(frozen=True)
class TenantContext:
    """
    Request-scoped tenant context.

    Attributes:
        user_id: The authenticated user
        organization_id: Selected organization, None for personal scope
        role: The user's role in organization_id ("owner", "admin", "member")
    """

    user_id: uuid.UUID
    organization_id: uuid.UUID | None = None
    role: str | None = None

    @property
    def is_personal(self) -> bool:
        """True when no organization is selected; rows are scoped to user_id."""
        return self.organization_id is None

    @property
    def is_admin(self) -> bool:
        return self.role in ("owner", "admin")

    def apply(self, stmt: Select, model) -> Select:
        """
        Restrict a SELECT on a TenantOwnedMixin model to this scope.

        Organization scope returns every row of the organization; personal
        scope returns the user's rows that belong to no organization.
        """
        if self.organization_id is not None:
            return stmt.where(model.organization_id == self.organization_id)
        return stmt.where(model.user_id == self.user_id, model.organization_id.is_(None))

    def owner_fields(self) -> dict:
        """Column values stamped on rows created in this scope."""
        return {"user_id": self.user_id, "organization_id": self.organization_id}
