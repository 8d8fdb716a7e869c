"""Site health schemas for the dashboard."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from ..models.enums import CheckType, HealthStatus, IncidentType


class HealthCheckView(BaseModel):
    """Latest result of one check type."""
    check_type: CheckType
    status: HealthStatus
    response_time_ms: Optional[int] = None
    status_code: Optional[int] = None
    ssl_days_remaining: Optional[int] = None
    ssl_expiry: Optional[datetime] = None
    error_message: Optional[str] = None
    checked_at: datetime

    class Config:
        from_attributes = True


class IncidentView(BaseModel):
    """An incident, with the site it belongs to when listed on its own."""
    id: int
    site_id: int
    site_name: Optional[str] = None
    website_url: Optional[str] = None
    type: IncidentType
    description: str
    started_at: datetime
    resolved_at: Optional[datetime] = None
    alert_count: int
    last_alert_sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SiteHealth(BaseModel):
    """Current health of a monitored site."""
    site_id: int
    name: str
    website_url: str
    current_health_status: HealthStatus
    last_health_check: Optional[datetime] = None
    checks: List[HealthCheckView]
    incidents: List[IncidentView]


class HealthSummary(BaseModel):
    """Site counts by aggregate status."""
    total: int
    healthy: int
    degraded: int
    down: int


class HealthStatusResponse(BaseModel):
    """Dashboard health overview."""
    summary: HealthSummary
    sites: List[SiteHealth]


class IncidentHistoryResponse(BaseModel):
    """Recent incidents, newest first."""
    incidents: List[IncidentView]


class ActivityView(BaseModel):
    """Activity feed entry."""
    id: int
    type: str
    description: str
    site_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
