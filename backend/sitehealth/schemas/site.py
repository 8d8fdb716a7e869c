"""Site schemas for API."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from ..models.enums import HealthStatus
from ..models.site import DEPLOYED_ACTIVE


class SiteCreate(BaseModel):
    """Schema for adding a site to the directory."""
    name: str = Field(..., min_length=1, max_length=255)
    website_url: Optional[str] = None
    contact_form_endpoint: Optional[str] = None
    project_status: str = DEPLOYED_ACTIVE


class SiteUpdate(BaseModel):
    """Schema for updating a site."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    website_url: Optional[str] = None
    contact_form_endpoint: Optional[str] = None
    project_status: Optional[str] = None


class SiteResponse(BaseModel):
    """Schema for site in API responses."""
    id: int
    name: str
    website_url: Optional[str] = None
    contact_form_endpoint: Optional[str] = None
    project_status: str
    current_health_status: Optional[HealthStatus] = None
    last_health_check: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
