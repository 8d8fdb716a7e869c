"""Incident model - open/resolved problem episodes per site and incident type."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow
from .enums import IncidentType, enum_column_type


class Incident(Base):
    """A tracked problem for one (site, incident type) pair.

    At most one unresolved incident may exist per pair. The partial unique
    index enforces this in the database so that two overlapping check runs
    cannot both open one.
    """

    __tablename__ = "incidents"
    __table_args__ = (
        Index(
            "uq_incidents_open_site_type",
            "site_id",
            "type",
            unique=True,
            sqlite_where=text("resolved_at IS NULL"),
            postgresql_where=text("resolved_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(enum_column_type(IncidentType), nullable=False)
    description = Column(String, nullable=False)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    alert_count = Column(Integer, default=0, nullable=False)
    last_alert_sent_at = Column(DateTime, nullable=True)

    # Relationships
    site = relationship("Site", back_populates="incidents")
    alerts = relationship("Alert", back_populates="incident", cascade="all, delete-orphan")
