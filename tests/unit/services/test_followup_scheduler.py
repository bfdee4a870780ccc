"""
Tests for the follow-up scheduler cycle and the background service manager.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core import background_services
from app.core.background_services import BackgroundServiceManager
from app.services import followup_scheduler
from app.services.followup_scheduler import FollowupScheduler


@pytest.fixture
def sessions(monkeypatch, mock_async_session):
    @asynccontextmanager
    async def fake_context():
        yield mock_async_session

    monkeypatch.setattr(followup_scheduler, "get_async_db_context", fake_context)
    return mock_async_session


class TestFollowupScheduler:
    async def test_failing_step_does_not_stop_the_cycle(self, sessions, monkeypatch):
        scheduler = FollowupScheduler(enabled=False)
        monkeypatch.setattr(scheduler, "_refresh_statuses", AsyncMock(return_value=3))
        monkeypatch.setattr(scheduler, "_dispatch_reminders", AsyncMock(side_effect=RuntimeError("smtp down")))
        monkeypatch.setattr(scheduler, "_expire_approvals", AsyncMock(return_value=1))
        monkeypatch.setattr(scheduler, "_process_automation", AsyncMock(return_value={"processed": 2}))

        results = await scheduler.run_cycle()

        assert results == {
            "statuses_changed": 3,
            "reminders_sent": None,
            "approvals_expired": 1,
            "automation": {"processed": 2},
        }
        scheduler._refresh_statuses.assert_awaited_once_with(sessions)

    async def test_disabled_scheduler_does_not_start(self):
        scheduler = FollowupScheduler(enabled=False)

        await scheduler.start()

        assert scheduler.is_running is False

    def test_interval_and_timezone(self):
        scheduler = FollowupScheduler(interval_minutes=7, timezone_name="Europe/Ljubljana", enabled=False)

        assert scheduler.interval_minutes == 7
        assert scheduler.tz.zone == "Europe/Ljubljana"


class TestBackgroundServiceManager:
    @pytest.fixture
    def scheduler(self):
        scheduler = MagicMock()
        scheduler.start = AsyncMock()
        scheduler.stop = AsyncMock()
        scheduler.is_running = True
        return scheduler

    async def test_scheduler_not_started_when_disabled(self, scheduler, monkeypatch):
        monkeypatch.setattr(background_services.settings, "FOLLOWUP_SCHEDULER_ENABLED", False)
        manager = BackgroundServiceManager(scheduler)

        await manager.start()

        assert manager.is_running
        scheduler.start.assert_not_awaited()

    async def test_start_and_stop(self, scheduler, monkeypatch):
        monkeypatch.setattr(background_services.settings, "FOLLOWUP_SCHEDULER_ENABLED", True)
        manager = BackgroundServiceManager(scheduler)

        await manager.start()
        assert manager.get_status() == {"running": True, "followup_scheduler_running": True}

        await manager.stop()
        scheduler.stop.assert_awaited_once()
        assert manager.is_running is False

    async def test_scheduler_failure_is_logged_not_raised(self, scheduler, monkeypatch):
        monkeypatch.setattr(background_services.settings, "FOLLOWUP_SCHEDULER_ENABLED", True)
        scheduler.start = AsyncMock(side_effect=RuntimeError("boom"))
        manager = BackgroundServiceManager(scheduler)

        await manager.start()

        assert manager.is_running
