"""Baseline migration - initial CRM schema.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-19

Schemas created:
- core: users, organizations, memberships, user preferences
- crm: contacts, products, suppliers, email accounts, emails, follow-ups, automation
- ai: agent activities, thoughts, settings and memories
"""

from typing import Sequence, Union

from alembic import op

from app.models.db import Base
from app.models.db.schemas import AI_SCHEMA, CORE_SCHEMA, CRM_SCHEMA

# revision identifiers, used by Alembic.
revision: str = "001_baseline"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMAS = (CORE_SCHEMA, CRM_SCHEMA, AI_SCHEMA)


def upgrade() -> None:
    # gen_random_uuid() server defaults
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
    for schema in SCHEMAS:
        op.execute(f"CREATE SCHEMA IF NOT EXISTS {schema}")

    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
    for schema in reversed(SCHEMAS):
        op.execute(f"DROP SCHEMA IF EXISTS {schema} CASCADE")
