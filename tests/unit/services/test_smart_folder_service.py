"""
Unit tests for smart folder filtering, sorting and validation.
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from app.services.smart_folder_service import (
    DEFAULT_SMART_FOLDERS,
    SmartFolderError,
    SmartFolderNotFoundError,
    SmartFolderService,
    apply_folder,
    matches_rules,
    sort_followups,
    validate_filter_rules,
)
from tests.factories import NOW, make_followup


class TestMatchesRules:
    def test_empty_rules_match_everything(self):
        assert matches_rules(make_followup(), {}, NOW)

    def test_status_and_priority_lists(self):
        followup = make_followup(status="due", priority="high")
        assert matches_rules(followup, {"status": ["due", "overdue"], "priority": ["high"]}, NOW)
        assert not matches_rules(followup, {"status": ["overdue"]}, NOW)
        assert not matches_rules(followup, {"priority": ["low"]}, NOW)

    def test_days_overdue_min(self):
        followup = make_followup(follow_up_due_at=NOW - timedelta(days=3))
        assert matches_rules(followup, {"days_overdue_min": 2}, NOW)
        assert not matches_rules(followup, {"days_overdue_min": 4}, NOW)

    def test_text_filters_are_case_insensitive(self):
        followup = make_followup(original_subject="Renewal Proposal", original_recipients=["Ana@ACME.com"])
        assert matches_rules(followup, {"recipient_contains": "@acme.com", "subject_contains": "proposal"}, NOW)
        assert not matches_rules(followup, {"recipient_contains": "@other.com"}, NOW)


class TestSorting:
    def test_priority_desc_then_due_date(self):
        low = make_followup(priority="low")
        urgent_late = make_followup(priority="urgent", follow_up_due_at=NOW + timedelta(days=2))
        urgent_soon = make_followup(priority="urgent", follow_up_due_at=NOW + timedelta(days=1))

        assert sort_followups([low, urgent_late, urgent_soon], "priority_desc") == [urgent_soon, urgent_late, low]

    def test_due_date_orders(self):
        first = make_followup(follow_up_due_at=NOW)
        second = make_followup(follow_up_due_at=NOW + timedelta(hours=1))

        assert sort_followups([second, first], "due_date_asc") == [first, second]
        assert sort_followups([first, second], "due_date_desc") == [second, first]

    def test_apply_folder_filters_then_sorts(self):
        overdue = make_followup(status="overdue", follow_up_due_at=NOW - timedelta(days=2))
        pending = make_followup(status="pending")
        due = make_followup(status="due", follow_up_due_at=NOW - timedelta(hours=1))

        result = apply_folder([pending, due, overdue], {"status": ["due", "overdue"]}, "due_date_asc", NOW)

        assert result == [overdue, due]


class TestValidation:
    def test_unknown_key(self):
        with pytest.raises(SmartFolderError):
            validate_filter_rules({"colour": ["red"]})

    def test_list_keys_must_be_lists(self):
        with pytest.raises(SmartFolderError):
            validate_filter_rules({"status": "due"})

    def test_default_folders_are_valid(self):
        for folder in DEFAULT_SMART_FOLDERS:
            validate_filter_rules(folder["filter_rules"])


class TestSmartFolderService:
    @pytest.fixture
    def service(self, mock_async_session, personal_context):
        service = SmartFolderService(mock_async_session, personal_context)
        service._folders = AsyncMock()
        service._followups = AsyncMock()
        return service

    async def test_defaults_seeded_on_first_listing(self, service):
        service._folders.has_any = AsyncMock(return_value=False)
        service._folders.find_active = AsyncMock(return_value=[])

        await service.list_folders()

        service._folders.add_all.assert_awaited_once_with(DEFAULT_SMART_FOLDERS)

    async def test_defaults_not_reseeded(self, service):
        service._folders.has_any = AsyncMock(return_value=True)
        service._folders.find_active = AsyncMock(return_value=[])

        await service.list_folders()

        service._folders.add_all.assert_not_awaited()

    async def test_invalid_sort_order(self, service):
        with pytest.raises(SmartFolderError):
            await service.create_folder({"name": "Mine", "sort_order": "random"})

    async def test_missing_folder(self, service):
        service._folders.get_by_id = AsyncMock(return_value=None)
        with pytest.raises(SmartFolderNotFoundError):
            await service.delete_folder(uuid.uuid4())
