"""PostgreSQL schema constants.

Tables are grouped into logical schemas:
- core: auth, organizations, memberships, user preferences
- crm: contacts, products, suppliers, email accounts, emails, follow-ups
- ai: AI agent transparency (activities, thoughts, settings, memories)
"""

# Core system schema - auth and tenancy
CORE_SCHEMA = "core"

# CRM domain schema
CRM_SCHEMA = "crm"

# AI transparency schema
AI_SCHEMA = "ai"

# Default search path for SQLAlchemy connections
DEFAULT_SEARCH_PATH = f"public,{CORE_SCHEMA},{CRM_SCHEMA},{AI_SCHEMA}"

# All managed schemas (for Alembic configuration)
MANAGED_SCHEMAS = frozenset({
    "public",
    CORE_SCHEMA,
    CRM_SCHEMA,
    AI_SCHEMA,
})
