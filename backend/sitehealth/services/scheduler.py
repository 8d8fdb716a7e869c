"""Scheduler service - triggers each check type on its own cadence.

Cadence defaults:
- uptime every 30 minutes
- contact form every 6 hours
- SSL once a day at 06:00 UTC
- pruning of old check results every hour

Each job runs with max_instances=1 so a slow run is never overlapped by the
next tick of the same job. Deployments that trigger checks from an external
cron through /api/cron/* can turn this off with SCHEDULER_ENABLED=false.
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import Settings, settings
from ..models.enums import CheckType
from .monitoring import MonitoringService, monitoring_service

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service for scheduling periodic check runs."""

    def __init__(self, monitoring: MonitoringService, config: Settings):
        self.monitoring = monitoring
        self.config = config
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def build_triggers(self) -> dict:
        """Trigger per check type."""
        return {
            CheckType.UPTIME: IntervalTrigger(minutes=self.config.uptime_interval_minutes),
            CheckType.CONTACT_FORM: IntervalTrigger(hours=self.config.contact_form_interval_hours),
            CheckType.SSL: CronTrigger(hour=self.config.ssl_check_hour, minute=0, timezone="UTC"),
        }

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler(timezone="UTC")

        for check_type, trigger in self.build_triggers().items():
            self.scheduler.add_job(
                self._run_check,
                trigger=trigger,
                args=[check_type],
                id=f"check_{check_type.value}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

        self.scheduler.add_job(
            self._prune_checks,
            trigger=IntervalTrigger(hours=1),
            id="prune_checks",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def _run_check(self, check_type: CheckType):
        try:
            results = await self.monitoring.run_check(check_type)
            logger.info(f"Scheduled {check_type.value} check completed for {len(results)} sites")
        except Exception as e:
            logger.error(f"Error running scheduled {check_type.value} check: {e}")

    async def _prune_checks(self):
        """Delete check results older than the retention window."""
        try:
            await self.monitoring.prune_checks()
        except Exception as e:
            logger.error(f"Error pruning check results: {e}")


# Global instance
scheduler_service = SchedulerService(monitoring_service, settings)
