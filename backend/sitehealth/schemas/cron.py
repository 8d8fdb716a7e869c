"""Check run summary schemas."""
from typing import List, Optional
from pydantic import BaseModel

from ..models.enums import HealthStatus


class SiteRunSummary(BaseModel):
    """Outcome for one site in a check run."""
    name: str
    status: Optional[HealthStatus] = None
    days_remaining: Optional[int] = None  # SSL checks only
    error: Optional[str] = None  # Set when the site's pipeline failed

    class Config:
        from_attributes = True


class CheckRunResponse(BaseModel):
    """Response of a check invocation endpoint."""
    checked: int
    results: List[SiteRunSummary]
