"""Activity model - feed of notable events for the dashboard."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from ..database import Base
from ..utils.time_utils import utcnow

SITE_HEALTH_CHANGED = "site_health_changed"


class Activity(Base):
    """A single activity feed entry."""

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String, nullable=False)
    description = Column(String, nullable=False)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
