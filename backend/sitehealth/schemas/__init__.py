"""Pydantic schemas for API request/response models."""
from .cron import (
    CheckRunResponse,
    SiteRunSummary,
)
from .health import (
    ActivityView,
    HealthCheckView,
    HealthStatusResponse,
    HealthSummary,
    IncidentHistoryResponse,
    IncidentView,
    SiteHealth,
)
from .site import (
    SiteCreate,
    SiteUpdate,
    SiteResponse,
)

__all__ = [
    "CheckRunResponse",
    "SiteRunSummary",
    "ActivityView",
    "HealthCheckView",
    "HealthStatusResponse",
    "HealthSummary",
    "IncidentHistoryResponse",
    "IncidentView",
    "SiteHealth",
    "SiteCreate",
    "SiteUpdate",
    "SiteResponse",
]
