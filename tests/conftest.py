"""
Shared pytest fixtures for all tests.

Database sessions are mocked; nothing here needs PostgreSQL, Redis or Ollama.
"""

import os
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

# Ensure test environment before app settings are loaded
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("REDIS_CONNECT_RETRIES", "1")
os.environ["ENVIRONMENT"] = "test"
os.environ["FOLLOWUP_SCHEDULER_ENABLED"] = "false"

import app.models.db  # noqa: E402,F401  registers every mapper
from app.core.tenancy import TenantContext  # noqa: E402


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def mock_async_session():
    """Create a mock async database session."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.delete = AsyncMock()
    return session


# ============================================================================
# TENANCY FIXTURES
# ============================================================================


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def org_id():
    return uuid.uuid4()


@pytest.fixture
def personal_context(user_id):
    return TenantContext(user_id=user_id)


@pytest.fixture
def org_context(user_id, org_id):
    return TenantContext(user_id=user_id, organization_id=org_id, role="member")


# ============================================================================
# LLM FIXTURES
# ============================================================================


@pytest.fixture
def mock_llm():
    """Create a mock ILLM answering generate_chat with a JSON draft."""
    llm = MagicMock()
    llm.model_name = "llama3.2:latest"
    llm.generate_chat = AsyncMock(
        return_value='{"subject": "Checking in", "body": "Hi, any news?", "confidence": 0.9, "reasoning": "Gentle"}'
    )
    llm.generate = AsyncMock(return_value="Mocked LLM response")
    return llm
