"""
In-process scheduling of the bonus processing job.

Wraps process_pending_bonuses() in an APScheduler cron job for deployments
without an external scheduler. Disabled unless BONUS_SCHEDULER_ENABLED is set.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from repositories.client import Client
from services.bonus_processing_service import ProcessingResult, process_pending_bonuses

logger = logging.getLogger(__name__)

_JOB_ID = "process_pending_bonuses"


class BonusProcessingScheduler:
    """Runs the bonus batch on a crontab schedule (UTC)."""

    def __init__(self, client_factory: Callable[[], Client], cron: str = "0 3 * * *"):
        self.client_factory = client_factory
        self.trigger = CronTrigger.from_crontab(cron, timezone="UTC")
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.is_running = False

    def run_job(self) -> Optional[ProcessingResult]:
        """Single scheduled run; errors are logged so the schedule keeps going."""

        logger.info("Starting scheduled bonus processing")
        try:
            result = process_pending_bonuses(self.client_factory())
        except Exception:
            logger.exception("Scheduled bonus processing failed")
            return None

        logger.info("Scheduled bonus processing finished: %s", result.message)
        return result

    def start(self) -> None:
        if self.is_running:
            return
        self.scheduler.add_job(
            self.run_job,
            trigger=self.trigger,
            id=_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info("Bonus processing scheduler started")

    def shutdown(self) -> None:
        if not self.is_running:
            return
        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Bonus processing scheduler stopped")


__all__ = ["BonusProcessingScheduler"]
