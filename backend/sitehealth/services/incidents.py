"""Incident manager - incident lifecycle and alert cadence.

Each (site, incident type) pair moves none -> open -> resolved. A resolved
incident is never reopened; the next problem of that type opens a new one.

Alert cadence for an open incident: the first alert goes out immediately,
the second after first_repeat (1 hour), then one every repeat (6 hours).
"""
import asyncio
import html
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Alert, Incident
from ..models.enums import IncidentType
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow
from .directory import MonitoredSite

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    channel: str

    async def send(self, text: str) -> bool:
        ...


def format_alert_message(site_name: str, incident_type: IncidentType, description: str, url: str) -> str:
    """HTML alert text: severity marker, bold site name, description, link."""
    emoji = "🔴" if incident_type.is_critical else "🟡"
    return (
        f"{emoji} <b>{html.escape(site_name)}</b>\n"
        f"{html.escape(description)}\n"
        f'<a href="{html.escape(url)}">{html.escape(url)}</a>'
    )


def format_resolved_message(site_name: str, description: str, url: str) -> str:
    """HTML resolution text referencing the incident's original description."""
    return (
        f"✅ <b>{html.escape(site_name)}</b>\n"
        f"Resolved: {html.escape(description)}\n"
        f'<a href="{html.escape(url)}">{html.escape(url)}</a>'
    )


class IncidentManager:
    """Opens, alerts on, and resolves incidents. The only writer of Incident rows."""

    def __init__(
        self,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
        first_repeat: timedelta = timedelta(hours=1),
        repeat: timedelta = timedelta(hours=6),
    ):
        self.notifier = notifier
        self._clock = clock
        self.first_repeat = first_repeat
        self.repeat = repeat
        # (lock, holders) per pair, dropped once nobody holds or waits on it.
        # Only serializes this process; other processes are held off by the
        # partial unique index and the conditional updates.
        self._locks: Dict[Tuple[int, IncidentType], List] = {}

    @asynccontextmanager
    async def _pair_lock(self, key: Tuple[int, IncidentType]):
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def should_alert(self, incident: Incident, now: datetime) -> bool:
        """Whether the cadence policy allows another alert for this incident."""
        if not incident.alert_count:
            return True
        if incident.last_alert_sent_at is None:
            return True

        elapsed = now - incident.last_alert_sent_at
        if incident.alert_count == 1:
            return elapsed >= self.first_repeat
        return elapsed >= self.repeat

    async def handle_incident(
        self,
        session: AsyncSession,
        site: MonitoredSite,
        incident_type: IncidentType,
        description: str,
        url: Optional[str] = None,
    ) -> Incident:
        """Make sure an incident is open for the problem and alert if due."""
        async with self._pair_lock((site.id, incident_type)):
            incident = await self._get_or_open(session, site.id, incident_type, description)

            now = self._clock()
            if not self.should_alert(incident, now):
                logger.debug(
                    f"Alert suppressed for {site.name} ({incident_type.value}): "
                    f"{incident.alert_count} sent, last at {incident.last_alert_sent_at}"
                )
                return incident

            incident_id = incident.id
            alert_number = incident.alert_count + 1
            # Counted before sending, whether or not delivery works, so a dead
            # channel is not hammered and a second process cannot send it too
            if not await self._claim_alert(session, incident, now):
                logger.info(f"Alert #{alert_number} for {site.name} ({incident_type.value}) already sent elsewhere")
                return incident

            message = format_alert_message(site.name, incident_type, description, url or site.website_url)
            success = await self._notify(message)
            await self._record_alert(session, incident_id, site.id, "alert", now, message, success)
            logger.info(f"Alert #{alert_number} for {site.name} ({incident_type.value}), delivered={success}")
            return incident

    async def resolve_incidents(
        self,
        session: AsyncSession,
        site: MonitoredSite,
        incident_type: IncidentType,
        url: Optional[str] = None,
    ) -> int:
        """Resolve every open incident of this type for the site.

        Returns how many this call resolved. An incident another process
        resolved in the meantime is skipped without a second notification.
        """
        async with self._pair_lock((site.id, incident_type)):
            result = await session.execute(
                select(Incident)
                .where(
                    Incident.site_id == site.id,
                    Incident.type == incident_type,
                    Incident.resolved_at.is_(None),
                )
                .execution_options(populate_existing=True)
            )
            open_incidents = [(i, i.id, i.description) for i in result.scalars().all()]

            resolved = 0
            for incident, incident_id, description in open_incidents:
                now = self._clock()
                if not await self._claim_resolution(session, incident, now):
                    logger.info(f"{incident_type.value} incident {incident_id} already resolved elsewhere")
                    continue
                resolved += 1
                logger.info(f"Resolved {incident_type.value} incident {incident_id} for {site.name}")

                message = format_resolved_message(site.name, description, url or site.website_url)
                success = await self._notify(message)
                await self._record_alert(session, incident_id, site.id, "resolved", now, message, success)

            return resolved

    async def _claim_alert(self, session: AsyncSession, incident: Incident, now: datetime) -> bool:
        """Count one alert, unless another run counted it since we read the row."""
        incident_id = incident.id
        seen = incident.alert_count

        async def claim() -> int:
            result = await session.execute(
                update(Incident)
                .where(Incident.id == incident_id, Incident.alert_count == seen)
                .values(alert_count=Incident.alert_count + 1, last_alert_sent_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount

        claimed = await retry_on_lock(session, claim) == 1
        await session.refresh(incident)
        return claimed

    async def _claim_resolution(self, session: AsyncSession, incident: Incident, now: datetime) -> bool:
        """Set resolved_at, unless another run already has."""
        incident_id = incident.id

        async def claim() -> int:
            result = await session.execute(
                update(Incident)
                .where(Incident.id == incident_id, Incident.resolved_at.is_(None))
                .values(resolved_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount

        claimed = await retry_on_lock(session, claim) == 1
        await session.refresh(incident)
        return claimed

    async def _record_alert(
        self,
        session: AsyncSession,
        incident_id: int,
        site_id: int,
        kind: str,
        sent_at: datetime,
        payload: str,
        success: bool,
    ):
        async def write():
            session.add(Alert(
                incident_id=incident_id,
                site_id=site_id,
                kind=kind,
                channel=self.notifier.channel,
                sent_at=sent_at,
                payload=payload,
                success=1 if success else 0,
            ))
            await session.commit()

        await retry_on_lock(session, write)

    async def _find_open(
        self,
        session: AsyncSession,
        site_id: int,
        incident_type: IncidentType,
    ) -> Optional[Incident]:
        # populate_existing: another process may have moved the row since this
        # session last loaded it
        result = await session.execute(
            select(Incident)
            .where(
                Incident.site_id == site_id,
                Incident.type == incident_type,
                Incident.resolved_at.is_(None),
            )
            .order_by(Incident.started_at)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _get_or_open(
        self,
        session: AsyncSession,
        site_id: int,
        incident_type: IncidentType,
        description: str,
    ) -> Incident:
        incident = await self._find_open(session, site_id, incident_type)
        if incident is not None:
            return incident

        incident = Incident(
            site_id=site_id,
            type=incident_type,
            description=description,
            started_at=self._clock(),
            alert_count=0,
        )

        async def insert():
            session.add(incident)
            await session.commit()

        try:
            await retry_on_lock(session, insert)
        except IntegrityError:
            # Another run opened one between the lookup and the insert
            await session.rollback()
            incident = await self._find_open(session, site_id, incident_type)
            if incident is None:
                raise
            logger.info(f"Joined concurrently opened {incident_type.value} incident {incident.id}")
            return incident

        logger.info(f"Opened {incident_type.value} incident {incident.id} for site {site_id}")
        return incident

    async def _notify(self, message: str) -> bool:
        """Send through the notifier; its failures never reach the caller."""
        try:
            return bool(await self.notifier.send(message))
        except Exception as e:
            logger.error(f"Notifier failed: {e}")
            return False
