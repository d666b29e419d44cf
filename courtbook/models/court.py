"""Court model."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from courtbook.core.database import Base


class Court(Base):
    """Represents a bookable court at a venue."""

    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    sport = Column(String, nullable=True)  # e.g., "football", "padel"
    price_per_hour = Column(Numeric(10, 2), nullable=False, default=0)
    max_players = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    venue = relationship("Venue", back_populates="courts")
    bookings = relationship("Booking", back_populates="court", cascade="all, delete-orphan")
    conflicts = relationship("Conflict", back_populates="court", cascade="all, delete-orphan")
    availability_windows = relationship(
        "CourtAvailability", back_populates="court", cascade="all, delete-orphan"
    )
