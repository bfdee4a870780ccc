"""
Smart folders: saved filters over the user's follow-ups.

Filter rules are a JSON object; every key present must match:

    {
        "status": ["due", "overdue"],
        "priority": ["high", "urgent"],
        "follow_up_type": ["auto"],
        "days_overdue_min": 2,
        "recipient_contains": "@acme.com",
        "subject_contains": "proposal"
    }
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tenancy import TenantContext
from app.models.db.base import utcnow
from app.models.db.followups import EmailFollowup, SmartFolder
from app.repositories.followup_repository import FollowupRepository
from app.repositories.smart_folder_repository import SmartFolderRepository

logger = logging.getLogger(__name__)

SORT_ORDERS = ("due_date_asc", "due_date_desc", "priority_desc", "created_desc", "sent_date_desc")
PRIORITY_RANK = {"low": 1, "medium": 2, "high": 3, "urgent": 4}
FILTER_KEYS = (
    "status",
    "priority",
    "follow_up_type",
    "days_overdue_min",
    "recipient_contains",
    "subject_contains",
)

DEFAULT_SMART_FOLDERS = [
    {
        "name": "Due Today",
        "description": "Follow-ups that are due now",
        "color": "#F59E0B",
        "icon": "clock",
        "filter_rules": {"status": ["due"]},
        "sort_order": "due_date_asc",
        "display_order": 0,
        "is_default": True,
    },
    {
        "name": "Overdue",
        "description": "Follow-ups past their due date",
        "color": "#EF4444",
        "icon": "alert-triangle",
        "filter_rules": {"status": ["overdue"]},
        "sort_order": "due_date_asc",
        "display_order": 1,
        "is_default": True,
    },
    {
        "name": "High Priority",
        "description": "Open high and urgent follow-ups",
        "color": "#8B5CF6",
        "icon": "star",
        "filter_rules": {"priority": ["high", "urgent"], "status": ["pending", "due", "overdue"]},
        "sort_order": "priority_desc",
        "display_order": 2,
        "is_default": True,
    },
]


class SmartFolderError(Exception):
    """Invalid filter rules or sort order."""

    pass


class SmartFolderNotFoundError(SmartFolderError):
    pass


def validate_filter_rules(rules: dict[str, Any]) -> dict[str, Any]:
    unknown = set(rules) - set(FILTER_KEYS)
    if unknown:
        raise SmartFolderError(f"Unknown filter keys: {', '.join(sorted(unknown))}")
    for key in ("status", "priority", "follow_up_type"):
        if key in rules and not isinstance(rules[key], list):
            raise SmartFolderError(f"'{key}' must be a list")
    return rules


def matches_rules(followup: EmailFollowup, rules: dict[str, Any], now: datetime) -> bool:
    if rules.get("status") and followup.status not in rules["status"]:
        return False
    if rules.get("priority") and followup.priority not in rules["priority"]:
        return False
    if rules.get("follow_up_type") and followup.follow_up_type not in rules["follow_up_type"]:
        return False

    if rules.get("days_overdue_min") is not None:
        days_overdue = (now - followup.follow_up_due_at).total_seconds() / 86400
        if days_overdue < rules["days_overdue_min"]:
            return False

    if rules.get("recipient_contains"):
        needle = rules["recipient_contains"].lower()
        if not any(needle in recipient.lower() for recipient in followup.original_recipients or []):
            return False

    if rules.get("subject_contains"):
        if rules["subject_contains"].lower() not in (followup.original_subject or "").lower():
            return False

    return True


def sort_followups(followups: list[EmailFollowup], sort_order: str) -> list[EmailFollowup]:
    if sort_order == "due_date_desc":
        return sorted(followups, key=lambda f: f.follow_up_due_at, reverse=True)
    if sort_order == "priority_desc":
        return sorted(followups, key=lambda f: (-PRIORITY_RANK.get(f.priority, 0), f.follow_up_due_at))
    if sort_order == "created_desc":
        return sorted(followups, key=lambda f: f.created_at, reverse=True)
    if sort_order == "sent_date_desc":
        return sorted(followups, key=lambda f: f.original_sent_at, reverse=True)
    return sorted(followups, key=lambda f: f.follow_up_due_at)


def apply_folder(
    followups: list[EmailFollowup],
    rules: dict[str, Any],
    sort_order: str,
    now: datetime | None = None,
) -> list[EmailFollowup]:
    """Filter and sort follow-ups the way a folder defines."""
    now = now or utcnow()
    return sort_followups([f for f in followups if matches_rules(f, rules or {}, now)], sort_order)


class SmartFolderService:
    def __init__(self, db: AsyncSession, context: TenantContext):
        self._folders = SmartFolderRepository(db, context)
        self._followups = FollowupRepository(db, context)

    async def ensure_default_folders(self) -> None:
        if not await self._folders.has_any():
            await self._folders.add_all(DEFAULT_SMART_FOLDERS)
            logger.info("Seeded default smart folders")

    async def list_folders(self, include_count: bool = False) -> list[dict[str, Any]]:
        """Active folders in display order, seeding the defaults on first use."""
        await self.ensure_default_folders()
        folders = await self._folders.find_active()

        if not include_count:
            return [folder.to_dict() for folder in folders]

        followups = await self._followups.find(limit=None)
        now = utcnow()
        return [
            {**folder.to_dict(), "count": len(apply_folder(followups, folder.filter_rules, folder.sort_order, now))}
            for folder in folders
        ]

    async def get_folder(self, folder_id: UUID) -> SmartFolder:
        folder = await self._folders.get_by_id(folder_id)
        if folder is None:
            raise SmartFolderNotFoundError(f"Smart folder {folder_id} not found")
        return folder

    async def create_folder(self, data: dict[str, Any]) -> SmartFolder:
        self._validate(data)
        return await self._folders.create(data)

    async def update_folder(self, folder_id: UUID, data: dict[str, Any]) -> SmartFolder:
        folder = await self.get_folder(folder_id)
        self._validate(data)
        return await self._folders.update(folder, data)

    async def delete_folder(self, folder_id: UUID) -> None:
        folder = await self.get_folder(folder_id)
        await self._folders.delete(folder)

    async def folder_followups(self, folder_id: UUID, limit: int = 100) -> list[EmailFollowup]:
        folder = await self.get_folder(folder_id)
        followups = await self._followups.find(limit=None)
        return apply_folder(followups, folder.filter_rules, folder.sort_order)[:limit]

    @staticmethod
    def _validate(data: dict[str, Any]) -> None:
        if "filter_rules" in data:
            validate_filter_rules(data["filter_rules"] or {})
        if "sort_order" in data and data["sort_order"] not in SORT_ORDERS:
            raise SmartFolderError(f"Invalid sort order: {data['sort_order']}")
