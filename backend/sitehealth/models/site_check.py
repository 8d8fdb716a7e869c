"""SiteCheck model - append-only history of check results."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow
from .enums import CheckType, HealthStatus, enum_column_type


class SiteCheck(Base):
    """One immutable check result - pruned after the retention window."""

    __tablename__ = "site_checks"
    __table_args__ = (
        Index("ix_site_checks_site_type_checked", "site_id", "check_type", "checked_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    check_type = Column(enum_column_type(CheckType), nullable=False)
    status = Column(enum_column_type(HealthStatus), nullable=False)
    response_time_ms = Column(Integer, nullable=True)
    status_code = Column(Integer, nullable=True)
    ssl_days_remaining = Column(Integer, nullable=True)
    ssl_expiry = Column(DateTime, nullable=True)
    error_message = Column(String, nullable=True)
    checked_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Relationship
    site = relationship("Site", back_populates="checks")
