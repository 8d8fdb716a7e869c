"""Check recorder - append-only storage of check results."""
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import SiteCheck
from ..models.enums import CheckType
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow
from .checker import CheckOutcome

logger = logging.getLogger(__name__)


class CheckRecorder:
    """Writes check results and answers "latest result per check type".

    Results are never updated. Write failures propagate to the caller.
    """

    def __init__(self, retention_days: int = 30, clock: Callable[[], datetime] = utcnow):
        self.retention_days = retention_days
        self._clock = clock

    async def record(
        self,
        session: AsyncSession,
        site_id: int,
        check_type: CheckType,
        outcome: CheckOutcome,
        checked_at: Optional[datetime] = None,
    ) -> SiteCheck:
        """Append one check result and commit it."""
        check = SiteCheck(
            site_id=site_id,
            check_type=check_type,
            status=outcome.status,
            response_time_ms=outcome.response_time_ms,
            status_code=outcome.status_code,
            ssl_days_remaining=outcome.ssl_days_remaining,
            ssl_expiry=outcome.ssl_expiry,
            error_message=outcome.error_message,
            checked_at=checked_at or self._clock(),
        )

        async def write():
            session.add(check)
            await session.commit()

        await retry_on_lock(session, write)
        return check

    async def latest_checks(self, session: AsyncSession, site_id: int) -> Dict[CheckType, SiteCheck]:
        """Get the most recent result for each check type that has one."""
        latest = {}
        for check_type in CheckType:
            result = await session.execute(
                select(SiteCheck)
                .where(
                    SiteCheck.site_id == site_id,
                    SiteCheck.check_type == check_type,
                )
                .order_by(SiteCheck.checked_at.desc(), SiteCheck.id.desc())
                .limit(1)
            )
            check = result.scalar_one_or_none()
            if check is not None:
                latest[check_type] = check
        return latest

    async def prune(self, session: AsyncSession, older_than: Optional[datetime] = None) -> int:
        """Delete results older than the retention window. Returns rows deleted."""
        cutoff = older_than or (self._clock() - timedelta(days=self.retention_days))

        async def delete_old() -> int:
            result = await session.execute(
                delete(SiteCheck).where(SiteCheck.checked_at < cutoff)
            )
            await session.commit()
            return result.rowcount

        deleted = await retry_on_lock(session, delete_old)
        logger.info(f"Pruned {deleted} check results older than {cutoff.isoformat()}")
        return deleted
