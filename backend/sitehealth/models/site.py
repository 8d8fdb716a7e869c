"""Site model - client websites from the directory, with their aggregate health."""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow
from .enums import HealthStatus, enum_column_type

# Only sites in this project status are monitored
DEPLOYED_ACTIVE = "Deployed Active"


class Site(Base):
    """A client website listed in the directory."""

    __tablename__ = "sites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    website_url = Column(String, nullable=True)
    contact_form_endpoint = Column(String, nullable=True)
    project_status = Column(String, nullable=False, default=DEPLOYED_ACTIVE)
    created_at = Column(DateTime, default=utcnow)

    # Aggregate health, written only by the status aggregator
    current_health_status = Column(enum_column_type(HealthStatus), nullable=True)
    last_health_check = Column(DateTime, nullable=True)

    # Relationships
    checks = relationship("SiteCheck", back_populates="site", cascade="all, delete-orphan")
    incidents = relationship("Incident", back_populates="site", cascade="all, delete-orphan")
