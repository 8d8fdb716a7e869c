"""Check invocation endpoints, called by the external cron."""
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Header

from ..config import settings
from ..models.enums import CheckType
from ..schemas.cron import CheckRunResponse, SiteRunSummary
from ..services.monitoring import MonitoringService, get_monitoring_service

logger = logging.getLogger(__name__)


def verify_cron_secret(authorization: Optional[str] = Header(None)):
    """Require "Authorization: Bearer <CRON_SECRET>"."""
    expected = settings.cron_secret
    if not expected:
        logger.warning("Cron invocation rejected - no cron secret configured")
        raise HTTPException(status_code=401, detail="Unauthorized")

    if not authorization or not hmac.compare_digest(
        authorization.encode(), f"Bearer {expected}".encode()
    ):
        logger.warning("Cron invocation rejected - invalid secret")
        raise HTTPException(status_code=401, detail="Unauthorized")


router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)],
)


async def _run_check(monitoring: MonitoringService, check_type: CheckType) -> CheckRunResponse:
    results = await monitoring.run_check(check_type)
    return CheckRunResponse(
        checked=len(results),
        results=[SiteRunSummary.model_validate(result) for result in results],
    )


@router.get("/uptime", response_model=CheckRunResponse, response_model_exclude_none=True)
async def run_uptime_check(monitoring: MonitoringService = Depends(get_monitoring_service)):
    """Check every monitored site's website responds."""
    return await _run_check(monitoring, CheckType.UPTIME)


@router.get("/ssl", response_model=CheckRunResponse, response_model_exclude_none=True)
async def run_ssl_check(monitoring: MonitoringService = Depends(get_monitoring_service)):
    """Check every monitored site's certificate expiry."""
    return await _run_check(monitoring, CheckType.SSL)


@router.get("/contact-form", response_model=CheckRunResponse, response_model_exclude_none=True)
async def run_contact_form_check(monitoring: MonitoringService = Depends(get_monitoring_service)):
    """Check every monitored contact form endpoint accepts submissions."""
    return await _run_check(monitoring, CheckType.CONTACT_FORM)
