"""Alert model - log of notifications sent for incidents."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow


class Alert(Base):
    """Record of an incident alert or resolution notice."""

    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    kind = Column(String, nullable=False)  # alert, resolved
    channel = Column(String, default="telegram")
    sent_at = Column(DateTime, default=utcnow)
    payload = Column(String, nullable=True)  # Message text
    success = Column(Integer, nullable=True)  # 1=success, 0=failed

    # Relationship
    incident = relationship("Incident", back_populates="alerts")
