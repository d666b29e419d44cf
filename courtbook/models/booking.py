"""Booking model."""
import enum

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Numeric, Index, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, text
from courtbook.core.database import Base


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


# Only these statuses occupy their interval
BLOCKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

_BLOCKING_PREDICATE = text("status IN ('PENDING', 'CONFIRMED')")


class Booking(Base):
    """Represents a customer's reservation of a court on a date."""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=False, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)    # "HH:MM"
    duration = Column(Integer, nullable=False)      # minutes
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default=BookingStatus.PENDING.value, index=True)
    player_count = Column(Integer, nullable=False, default=1)
    customer_name = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    idempotency_key = Column(String(128), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    court = relationship("Court", back_populates="bookings")

    __table_args__ = (
        Index("ix_bookings_court_date", "court_id", "date"),
        # Two active bookings can never share a start on the same court and date
        Index(
            "uq_bookings_active_start",
            "court_id",
            "date",
            "start_time",
            unique=True,
            postgresql_where=_BLOCKING_PREDICATE,
            sqlite_where=_BLOCKING_PREDICATE,
        ),
    )
