"""Site health API for the dashboard."""
from collections import defaultdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import Activity, Incident, Site
from ..models.enums import HealthStatus
from ..schemas.health import (
    ActivityView,
    HealthCheckView,
    HealthStatusResponse,
    HealthSummary,
    IncidentHistoryResponse,
    IncidentView,
    SiteHealth,
)
from ..services.directory import monitored_sites_query
from ..services.monitoring import MonitoringService, get_monitoring_service

router = APIRouter(prefix="/api/health", tags=["health"])

# Hard cap on incidents returned by /history
MAX_HISTORY_LIMIT = 200


def _incident_view(incident: Incident, site: Optional[Site] = None) -> IncidentView:
    return IncidentView(
        id=incident.id,
        site_id=incident.site_id,
        site_name=site.name if site else None,
        website_url=site.website_url if site else None,
        type=incident.type,
        description=incident.description,
        started_at=incident.started_at,
        resolved_at=incident.resolved_at,
        alert_count=incident.alert_count,
        last_alert_sent_at=incident.last_alert_sent_at,
    )


@router.get("/status", response_model=HealthStatusResponse)
async def get_health_status(
    db: AsyncSession = Depends(get_db),
    monitoring: MonitoringService = Depends(get_monitoring_service),
):
    """Current health of all monitored sites, problems first."""
    result = await db.execute(monitored_sites_query())
    sites = result.scalars().all()

    # Open incidents for all sites in one query
    open_incidents = defaultdict(list)
    if sites:
        incidents_result = await db.execute(
            select(Incident)
            .where(
                Incident.site_id.in_([site.id for site in sites]),
                Incident.resolved_at.is_(None),
            )
            .order_by(Incident.started_at.desc())
        )
        for incident in incidents_result.scalars().all():
            open_incidents[incident.site_id].append(_incident_view(incident))

    counts = {status: 0 for status in HealthStatus}
    site_views = []

    for site in sites:
        # Sites not checked yet count as healthy
        status = site.current_health_status or HealthStatus.HEALTHY
        counts[status] += 1

        latest = await monitoring.recorder.latest_checks(db, site.id)
        site_views.append(SiteHealth(
            site_id=site.id,
            name=site.name,
            website_url=site.website_url,
            current_health_status=status,
            last_health_check=site.last_health_check,
            checks=[HealthCheckView.model_validate(check) for check in latest.values()],
            incidents=open_incidents.get(site.id, []),
        ))

    # Down first, then degraded, then healthy
    site_views.sort(key=lambda view: view.current_health_status.severity, reverse=True)

    return HealthStatusResponse(
        summary=HealthSummary(
            total=len(sites),
            healthy=counts[HealthStatus.HEALTHY],
            degraded=counts[HealthStatus.DEGRADED],
            down=counts[HealthStatus.DOWN],
        ),
        sites=site_views,
    )


@router.get("/history", response_model=IncidentHistoryResponse)
async def get_incident_history(
    limit: int = Query(50, ge=1),
    status: str = Query("all", pattern="^(open|resolved|all)$"),
    db: AsyncSession = Depends(get_db),
):
    """Recent incidents, newest first. At most 200 are returned."""
    limit = min(limit, MAX_HISTORY_LIMIT)

    query = select(Incident, Site).join(Site, Incident.site_id == Site.id)
    if status == "open":
        query = query.where(Incident.resolved_at.is_(None))
    elif status == "resolved":
        query = query.where(Incident.resolved_at.is_not(None))

    result = await db.execute(
        query.order_by(Incident.started_at.desc(), Incident.id.desc()).limit(limit)
    )

    return IncidentHistoryResponse(
        incidents=[_incident_view(incident, site) for incident, site in result.all()]
    )


@router.get("/activity", response_model=List[ActivityView])
async def get_health_activity(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Recent site health status changes."""
    result = await db.execute(
        select(Activity).order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
    )
    return [ActivityView.model_validate(activity) for activity in result.scalars().all()]
