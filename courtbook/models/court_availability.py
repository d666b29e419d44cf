"""Explicit availability window model."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Date, Index
from sqlalchemy.orm import relationship
from courtbook.core.database import Base


class CourtAvailability(Base):
    """Override window for a court on a date. is_available=False blocks the window."""

    __tablename__ = "court_availability"

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    # Relationships
    court = relationship("Court", back_populates="availability_windows")

    __table_args__ = (
        Index("ix_court_availability_court_date", "court_id", "date"),
    )
