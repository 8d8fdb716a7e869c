"""Database models."""
from .enums import CheckType, HealthStatus, IncidentType
from .site import Site
from .site_check import SiteCheck
from .incident import Incident
from .alert import Alert
from .activity import Activity

__all__ = [
    "CheckType",
    "HealthStatus",
    "IncidentType",
    "Site",
    "SiteCheck",
    "Incident",
    "Alert",
    "Activity",
]
