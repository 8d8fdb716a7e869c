"""Monitoring orchestrator - runs one check type across all eligible sites."""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.enums import HealthStatus
from .aggregator import StatusAggregator
from .checker import CheckOutcome, SiteChecker
from .directory import MonitoredSite, get_monitored_sites
from .incidents import IncidentManager
from .recorder import CheckRecorder

logger = logging.getLogger(__name__)


@dataclass
class SiteRunResult:
    """Per-site line of a run summary."""
    name: str
    status: Optional[HealthStatus]
    days_remaining: Optional[int] = None
    error: Optional[str] = None


class MonitoringOrchestrator:
    """Drives checker -> recorder -> incidents -> aggregator for each site.

    Sites are processed one after another to keep outbound load on client
    sites low and run time predictable. A failure in one site's pipeline is
    logged and reported in the summary; the remaining sites still run.
    """

    def __init__(
        self,
        checker: SiteChecker,
        recorder: CheckRecorder,
        aggregator: StatusAggregator,
        incidents: IncidentManager,
        session_factory: async_sessionmaker,
    ):
        self.checker = checker
        self.recorder = recorder
        self.aggregator = aggregator
        self.incidents = incidents
        self._session_factory = session_factory

    @property
    def check_type(self):
        return self.checker.check_type

    async def run(self) -> List[SiteRunResult]:
        """Check every eligible site and return a summary."""
        async with self._session_factory() as session:
            sites = await get_monitored_sites(session, self.check_type)

        logger.info(f"Running {self.check_type.value} check for {len(sites)} sites")

        results = []
        for site in sites:
            results.append(await self._run_site(site))

        failures = sum(1 for r in results if r.status is not HealthStatus.HEALTHY)
        logger.info(f"{self.check_type.value} check finished: {len(results)} checked, {failures} not healthy")
        return results

    async def _run_site(self, site: MonitoredSite) -> SiteRunResult:
        """Run the pipeline for one site in its own session."""
        outcome: Optional[CheckOutcome] = None
        try:
            outcome = await self.checker.check(site)
            async with self._session_factory() as session:
                await self._process_outcome(session, site, outcome)
        except Exception as e:
            logger.error(f"Error running {self.check_type.value} check for site {site.id} ({site.name}): {e}")
            return SiteRunResult(
                name=site.name,
                status=outcome.status if outcome else None,
                days_remaining=outcome.ssl_days_remaining if outcome else None,
                error=str(e) or type(e).__name__,
            )

        logger.debug(f"Site {site.name}: {outcome.status.value}")
        return SiteRunResult(
            name=site.name,
            status=outcome.status,
            days_remaining=outcome.ssl_days_remaining,
        )

    async def _process_outcome(self, session: AsyncSession, site: MonitoredSite, outcome: CheckOutcome):
        await self.recorder.record(session, site.id, self.check_type, outcome)

        url = self.checker.alert_url(site)
        if outcome.status is HealthStatus.HEALTHY:
            for incident_type in self.checker.owned_incident_types:
                await self.incidents.resolve_incidents(session, site, incident_type, url=url)
        else:
            incident_type = self.checker.incident_type_for(outcome)
            if incident_type is not None:
                await self.incidents.handle_incident(
                    session, site, incident_type, self.checker.describe(outcome), url=url
                )

        await self.aggregator.recompute(session, site.id)
