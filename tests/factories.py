"""
Model builders shared by the tests.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from app.models.db.email import Email
from app.models.db.followups import EmailFollowup

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def scalars_result(items):
    """Mock of a Result whose scalars().all() returns items."""
    items = list(items)
    result = MagicMock()
    result.scalars.return_value.all.return_value = items
    result.scalar_one_or_none.return_value = items[0] if items else None
    return result


def make_followup(**overrides) -> EmailFollowup:
    """An open follow-up sent three days before NOW and due at NOW."""
    sent_at = overrides.pop("original_sent_at", NOW - timedelta(days=3))
    fields = {
        "id": uuid.uuid4(),
        "user_id": uuid.uuid4(),
        "organization_id": None,
        "original_subject": "Proposal for Q2",
        "original_recipients": ["client@acme.com"],
        "original_sent_at": sent_at,
        "follow_up_days": 3,
        "follow_up_due_at": sent_at + timedelta(days=3),
        "status": "pending",
        "priority": "medium",
        "follow_up_type": "manual",
        "reminder_count": 0,
        "notes": None,
        "extra_metadata": {},
        "created_at": sent_at,
        "updated_at": sent_at,
    }
    fields.update(overrides)
    return EmailFollowup(**fields)


def make_email(**overrides) -> Email:
    fields = {
        "id": uuid.uuid4(),
        "user_id": uuid.uuid4(),
        "organization_id": None,
        "direction": "received",
        "subject": "Re: Proposal for Q2",
        "sender": "Client <client@acme.com>",
        "recipients": ["me@example.com"],
        "body": None,
        "message_id": None,
        "thread_id": None,
        "in_reply_to": None,
        "sent_at": NOW,
    }
    fields.update(overrides)
    return Email(**fields)
