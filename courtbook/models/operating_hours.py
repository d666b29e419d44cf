"""Operating hours model."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from courtbook.core.database import Base


class OperatingHours(Base):
    """Weekly opening window of a venue. day_of_week: 0 = Sunday ... 6 = Saturday."""

    __tablename__ = "operating_hours"

    id = Column(Integer, primary_key=True, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    opening_time = Column(String(5), nullable=False)  # "HH:MM"
    closing_time = Column(String(5), nullable=False)  # "HH:MM", "24:00" allowed
    is_open = Column(Boolean, nullable=False, default=True)

    # Relationships
    venue = relationship("Venue", back_populates="operating_hours")

    __table_args__ = (
        UniqueConstraint("venue_id", "day_of_week", name="uq_operating_hours_venue_day"),
    )
