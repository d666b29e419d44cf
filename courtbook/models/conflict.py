"""Conflict (blackout) model."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from courtbook.core.database import Base

CONFLICT_ACTIVE = "active"
CONFLICT_RESOLVED = "resolved"


class Conflict(Base):
    """Administrative block of a court interval, independent of bookings."""

    __tablename__ = "conflicts"

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    reason = Column(String, nullable=True)
    status = Column(String, nullable=False, default=CONFLICT_ACTIVE)  # active, resolved
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    court = relationship("Court", back_populates="conflicts")

    __table_args__ = (
        Index("ix_conflicts_court_date", "court_id", "date"),
    )
