"""
Background services management for the application.

This module follows SRP by handling only background task orchestration.
"""

import logging
from typing import Any

from app.config.settings import get_settings
from app.services.followup_scheduler import FollowupScheduler

logger = logging.getLogger(__name__)
settings = get_settings()


class BackgroundServiceManager:
    """
    Manages background services lifecycle.

    Currently a single service: the follow-up scheduler (status refresh,
    reminders, approval expiry and automation).
    """

    def __init__(self, scheduler: FollowupScheduler | None = None) -> None:
        self._scheduler = scheduler
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if background services are running."""
        return self._running

    async def start(self) -> None:
        """Start all background services."""
        if self._running:
            logger.warning("Background services already running")
            return

        logger.info("Starting background services...")

        if settings.FOLLOWUP_SCHEDULER_ENABLED:
            await self._start_followup_scheduler()
        else:
            logger.info("Follow-up scheduler disabled via FOLLOWUP_SCHEDULER_ENABLED=False")

        self._running = True
        logger.info("Background services started")

    async def stop(self) -> None:
        """Stop all background services gracefully."""
        if not self._running:
            logger.warning("Background services not running")
            return

        logger.info("Stopping background services...")

        if self._scheduler and self._scheduler.is_running:
            try:
                await self._scheduler.stop()
            except Exception as e:
                logger.error(f"Error stopping follow-up scheduler: {e}", exc_info=True)

        self._running = False
        logger.info("Background services stopped")

    async def _start_followup_scheduler(self) -> None:
        try:
            if self._scheduler is None:
                self._scheduler = FollowupScheduler()
            await self._scheduler.start()
        except Exception as e:
            logger.error(f"Failed to start follow-up scheduler: {e}", exc_info=True)

    def get_status(self) -> dict[str, Any]:
        """
        Get status of background services.

        Returns:
            Dictionary with service status information.
        """
        return {
            "running": self._running,
            "followup_scheduler_running": bool(self._scheduler and self._scheduler.is_running),
        }
