"""Closed value types shared by models, services and schemas."""
import enum
from typing import Dict, Iterable, Tuple, Type

from sqlalchemy import Enum as SAEnum


class HealthStatus(str, enum.Enum):
    """Result of a single check, and the aggregate status of a site."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.DOWN: 2,
}


class CheckType(str, enum.Enum):
    """Independent probe dimensions run against a site."""

    UPTIME = "uptime"
    SSL = "ssl"
    CONTACT_FORM = "contact_form"


class IncidentType(str, enum.Enum):
    """Problem categories tracked as incidents."""

    DOWN = "down"
    DEGRADED = "degraded"
    SSL_EXPIRING = "ssl_expiring"
    SSL_EXPIRED = "ssl_expired"
    CONTACT_FORM_BROKEN = "contact_form_broken"

    @property
    def is_critical(self) -> bool:
        return self in (IncidentType.DOWN, IncidentType.SSL_EXPIRED)


# Incident types each check type opens and resolves
OWNED_INCIDENT_TYPES: Dict[CheckType, Tuple[IncidentType, ...]] = {
    CheckType.UPTIME: (IncidentType.DOWN, IncidentType.DEGRADED),
    CheckType.SSL: (IncidentType.SSL_EXPIRED, IncidentType.SSL_EXPIRING),
    CheckType.CONTACT_FORM: (IncidentType.CONTACT_FORM_BROKEN,),
}


def worst_status(statuses: Iterable[HealthStatus]) -> HealthStatus:
    """Down if any is down, else degraded if any is degraded, else healthy."""
    return max(statuses, key=lambda status: status.severity, default=HealthStatus.HEALTHY)


def enum_column_type(enum_cls: Type[enum.Enum]) -> SAEnum:
    """String-backed column type storing the enum's value."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
    )
