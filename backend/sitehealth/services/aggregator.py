"""Status aggregator - rolls the latest check per type into a site's health."""
import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Activity, Site
from ..models.activity import SITE_HEALTH_CHANGED
from ..models.enums import HealthStatus, worst_status
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow
from .recorder import CheckRecorder

logger = logging.getLogger(__name__)


class StatusAggregator:
    """Owns Site.current_health_status and Site.last_health_check."""

    def __init__(self, recorder: CheckRecorder, clock: Callable[[], datetime] = utcnow):
        self.recorder = recorder
        self._clock = clock

    async def recompute(self, session: AsyncSession, site_id: int) -> HealthStatus:
        """Recompute and store a site's overall status.

        The timestamp advances even when the status is unchanged. A change of
        status is written to the activity feed afterwards, best-effort.
        """
        latest = await self.recorder.latest_checks(session, site_id)
        overall = worst_status(check.status for check in latest.values())

        now = self._clock()

        async def store():
            site = await session.get(Site, site_id)
            if site is None:
                raise LookupError(f"Site {site_id} not found")
            previous = site.current_health_status
            site.current_health_status = overall
            site.last_health_check = now
            await session.commit()
            return site, previous

        site, previous = await retry_on_lock(session, store)

        if previous is not None and previous != overall:
            await self._record_transition(session, site, previous, overall)

        return overall

    async def _record_transition(
        self,
        session: AsyncSession,
        site: Site,
        previous: HealthStatus,
        current: HealthStatus,
    ):
        """Add a status change to the activity feed without failing the caller."""
        try:
            session.add(Activity(
                type=SITE_HEALTH_CHANGED,
                description=f"{site.name} health: {previous.value} → {current.value}",
                site_id=site.id,
            ))
            await session.commit()
            logger.info(f"Site {site.name}: {previous.value} -> {current.value}")
        except Exception as e:
            logger.error(f"Failed to record health change for site {site.id}: {e}")
            await session.rollback()
