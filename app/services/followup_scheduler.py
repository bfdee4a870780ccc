"""
Follow-up Scheduler.

APScheduler job that keeps follow-ups moving without user action. Every
FOLLOWUP_SCHEDULER_INTERVAL_MINUTES it:

1. re-derives follow-up statuses (pending -> due -> overdue)
2. dispatches reminders whose time has come
3. applies the fallback action of expired approvals
4. runs the active automation rules

Each step opens its own session, so a failing step does not stop the others.
"""

import logging
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-not-found]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-not-found]
from pytz import timezone
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import get_settings
from app.database.async_db import get_async_db_context
from app.integrations.llm import create_ollama_llm
from app.services.followup_ai_service import FollowupAIService
from app.services.followup_automation_service import FollowupAutomationService
from app.services.followup_service import FollowupService

logger = logging.getLogger(__name__)

JOB_ID = "followup_cycle"


class FollowupScheduler:
    """Runs the follow-up cycle on an interval."""

    def __init__(
        self,
        interval_minutes: int | None = None,
        timezone_name: str | None = None,
        enabled: bool | None = None,
    ):
        settings = get_settings()
        self.interval_minutes = interval_minutes or settings.FOLLOWUP_SCHEDULER_INTERVAL_MINUTES
        self.tz = timezone(timezone_name or settings.FOLLOWUP_TIMEZONE)
        self.enabled = settings.FOLLOWUP_SCHEDULER_ENABLED if enabled is None else enabled

        self._scheduler: AsyncIOScheduler | None = None
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        if not self.enabled:
            logger.info("FollowupScheduler is disabled, skipping start")
            return

        if self._is_running:
            logger.warning("FollowupScheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.tz)
        self._scheduler = scheduler

        scheduler.add_job(
            self.run_cycle,
            IntervalTrigger(minutes=self.interval_minutes, timezone=self.tz),
            id=JOB_ID,
            replace_existing=True,
            name="Follow-up status, reminders and automation",
            max_instances=1,
            coalesce=True,
        )

        scheduler.start()
        self._is_running = True
        logger.info(f"FollowupScheduler started (every {self.interval_minutes} min, {self.tz})")

    async def stop(self) -> None:
        if self._scheduler and self._is_running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("FollowupScheduler stopped")

    async def run_cycle(self) -> dict[str, Any]:
        """Run every step once. Returns the per-step results (None for a failed step)."""
        results = {
            "statuses_changed": await self._run_step("refresh statuses", self._refresh_statuses),
            "reminders_sent": await self._run_step("dispatch reminders", self._dispatch_reminders),
            "approvals_expired": await self._run_step("expire approvals", self._expire_approvals),
            "automation": await self._run_step("process automation", self._process_automation),
        }
        logger.info(f"Follow-up cycle finished: {results}")
        return results

    async def _run_step(self, name: str, step: Callable[[AsyncSession], Awaitable[Any]]) -> Any:
        try:
            async with get_async_db_context() as db:
                return await step(db)
        except Exception as e:
            logger.error(f"Follow-up job step '{name}' failed: {e}", exc_info=True)
            return None

    async def _refresh_statuses(self, db: AsyncSession) -> int:
        return await FollowupService(db).refresh_statuses()

    async def _dispatch_reminders(self, db: AsyncSession) -> int:
        return await FollowupService(db).dispatch_due_reminders()

    async def _expire_approvals(self, db: AsyncSession) -> int:
        return await FollowupAutomationService(db).expire_approvals()

    async def _process_automation(self, db: AsyncSession) -> dict[str, int]:
        ai_service = FollowupAIService(llm=create_ollama_llm())
        return await FollowupAutomationService(db, ai_service=ai_service).process_automation_rules()
