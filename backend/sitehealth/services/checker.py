"""Checker service - performs uptime, SSL certificate, and contact form checks.

Every check returns a CheckOutcome. Timeouts and connection failures are
outcomes too (down or degraded depending on the check type), never exceptions.
"""
import asyncio
import socket
import ssl
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple
from urllib.parse import urlsplit

import httpx
from cryptography import x509

from ..models.enums import CheckType, HealthStatus, IncidentType, OWNED_INCIDENT_TYPES
from ..utils.time_utils import utcnow
from .directory import MonitoredSite


@dataclass
class CheckOutcome:
    """Result of a single check, before it is recorded."""
    status: HealthStatus
    response_time_ms: Optional[int] = None
    status_code: Optional[int] = None
    ssl_days_remaining: Optional[int] = None
    ssl_expiry: Optional[datetime] = None
    error_message: Optional[str] = None


class SiteChecker:
    """Base class for a check that probes one concern of a site."""

    check_type: CheckType
    default_description = "Site problem detected"

    def __init__(self, timeout: float):
        self.timeout = timeout

    @property
    def owned_incident_types(self) -> Tuple[IncidentType, ...]:
        """Incident types this check opens, and resolves when healthy."""
        return OWNED_INCIDENT_TYPES[self.check_type]

    async def check(self, site: MonitoredSite) -> CheckOutcome:
        raise NotImplementedError

    def incident_type_for(self, outcome: CheckOutcome) -> Optional[IncidentType]:
        """Incident type to open for an unhealthy outcome, or None to leave incidents alone."""
        raise NotImplementedError

    def describe(self, outcome: CheckOutcome) -> str:
        return outcome.error_message or self.default_description

    def alert_url(self, site: MonitoredSite) -> str:
        return site.website_url


class UptimeChecker(SiteChecker):
    """GET the website and grade the response.

    - 5xx = down
    - 4xx = degraded
    - slower than slow_response_ms = degraded
    - network error or timeout = down
    """

    check_type = CheckType.UPTIME

    def __init__(
        self,
        timeout: float = 15,
        slow_response_ms: int = 10000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout)
        self.slow_response_ms = slow_response_ms
        self._transport = transport

    async def check(self, site: MonitoredSite) -> CheckOutcome:
        try:
            start = datetime.now()
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self._transport
            ) as client:
                response = await client.get(site.website_url)
            response_time = int((datetime.now() - start).total_seconds() * 1000)
        except httpx.TimeoutException:
            return CheckOutcome(status=HealthStatus.DOWN, error_message="Request timeout")
        except Exception as e:
            return CheckOutcome(status=HealthStatus.DOWN, error_message=str(e) or "Network error")

        status_code = response.status_code
        if status_code >= 500:
            status, error = HealthStatus.DOWN, f"HTTP {status_code}"
        elif status_code >= 400:
            status, error = HealthStatus.DEGRADED, f"HTTP {status_code}"
        elif response_time > self.slow_response_ms:
            status, error = HealthStatus.DEGRADED, f"Slow response: {response_time}ms"
        else:
            status, error = HealthStatus.HEALTHY, None

        return CheckOutcome(
            status=status,
            response_time_ms=response_time,
            status_code=status_code,
            error_message=error,
        )

    def incident_type_for(self, outcome: CheckOutcome) -> Optional[IncidentType]:
        if outcome.status is HealthStatus.DOWN:
            return IncidentType.DOWN
        if outcome.status is HealthStatus.DEGRADED:
            return IncidentType.DEGRADED
        return None

    def describe(self, outcome: CheckOutcome) -> str:
        return outcome.error_message or f"Site {outcome.status.value}"


class SslChecker(SiteChecker):
    """Check SSL certificate expiration on port 443.

    Status thresholds:
    - expired (0 days or less) = down
    - warning_days or less = degraded
    - otherwise healthy

    Connection errors, timeouts and missing certificates are degraded, not
    down: a TLS probe failing once says little about the certificate.
    """

    check_type = CheckType.SSL
    port = 443

    def __init__(
        self,
        timeout: float = 10,
        warning_days: int = 14,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(timeout)
        self.warning_days = warning_days
        self._clock = clock

    async def check(self, site: MonitoredSite) -> CheckOutcome:
        host = urlsplit(site.website_url).hostname
        if not host:
            return CheckOutcome(status=HealthStatus.DEGRADED, error_message="Invalid website URL")

        try:
            # Socket operations are blocking, run them in the thread pool
            loop = asyncio.get_running_loop()
            expiry = await asyncio.wait_for(
                loop.run_in_executor(None, self._get_certificate_expiry, host, self.port),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return CheckOutcome(status=HealthStatus.DEGRADED, error_message="Connection timed out")
        except Exception as e:
            return CheckOutcome(status=HealthStatus.DEGRADED, error_message=str(e) or "SSL check failed")

        if expiry is None:
            return CheckOutcome(status=HealthStatus.DEGRADED, error_message="No certificate found")

        # timedelta.days floors, so 23 hours left is 0 days
        days_remaining = (expiry - self._clock()).days

        if days_remaining <= 0:
            status, error = HealthStatus.DOWN, "SSL certificate expired"
        elif days_remaining <= self.warning_days:
            status, error = HealthStatus.DEGRADED, f"SSL expires in {days_remaining} days"
        else:
            status, error = HealthStatus.HEALTHY, None

        return CheckOutcome(
            status=status,
            ssl_days_remaining=days_remaining,
            ssl_expiry=expiry,
            error_message=error,
        )

    def _get_certificate_expiry(self, host: str, port: int) -> Optional[datetime]:
        """Get the peer certificate's notAfter as naive UTC (blocking operation)."""
        # Don't verify the chain, we want to read expired certificates too
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        with socket.create_connection((host, port), timeout=self.timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as ssock:
                # getpeercert() returns an empty dict when not validating
                cert_der = ssock.getpeercert(binary_form=True)

        if not cert_der:
            return None

        cert = x509.load_der_x509_certificate(cert_der)
        return cert.not_valid_after_utc.replace(tzinfo=None)

    def incident_type_for(self, outcome: CheckOutcome) -> Optional[IncidentType]:
        if outcome.status is HealthStatus.DOWN:
            return IncidentType.SSL_EXPIRED
        # Degraded without an expiry date is a connection problem, not an expiring cert
        if outcome.status is HealthStatus.DEGRADED and outcome.ssl_days_remaining is not None:
            return IncidentType.SSL_EXPIRING
        return None


class ContactFormChecker(SiteChecker):
    """POST a marked test submission to the contact form endpoint.

    - 5xx = down
    - anything else, 4xx included = healthy (the endpoint answered)
    - network error or timeout = down
    """

    check_type = CheckType.CONTACT_FORM
    default_description = "Contact form unreachable"

    def __init__(
        self,
        timeout: float = 15,
        email: str = "healthcheck@example.com",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout)
        self.email = email
        self._transport = transport

    def build_payload(self) -> dict:
        """Test submission; _health_check lets the receiver drop it."""
        return {
            "_health_check": True,
            "name": "Health Check",
            "email": self.email,
            "message": "Automated health check - please ignore",
        }

    async def check(self, site: MonitoredSite) -> CheckOutcome:
        try:
            start = datetime.now()
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self._transport
            ) as client:
                response = await client.post(site.contact_form_endpoint, json=self.build_payload())
            response_time = int((datetime.now() - start).total_seconds() * 1000)
        except httpx.TimeoutException:
            return CheckOutcome(status=HealthStatus.DOWN, error_message="Request timeout")
        except Exception as e:
            return CheckOutcome(status=HealthStatus.DOWN, error_message=str(e) or "Network error")

        if response.status_code >= 500:
            return CheckOutcome(
                status=HealthStatus.DOWN,
                response_time_ms=response_time,
                status_code=response.status_code,
                error_message=f"Contact form returned HTTP {response.status_code}",
            )

        return CheckOutcome(
            status=HealthStatus.HEALTHY,
            response_time_ms=response_time,
            status_code=response.status_code,
        )

    def incident_type_for(self, outcome: CheckOutcome) -> Optional[IncidentType]:
        if outcome.status is HealthStatus.DOWN:
            return IncidentType.CONTACT_FORM_BROKEN
        return None

    def alert_url(self, site: MonitoredSite) -> str:
        return site.website_url or site.contact_form_endpoint
