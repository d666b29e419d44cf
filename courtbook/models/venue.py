"""Venue model."""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from courtbook.core.database import Base


class Venue(Base):
    """Represents a vendor's venue that hosts one or more courts."""

    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    timezone = Column(String, nullable=False, default="UTC")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)  # Soft delete

    # Relationships
    courts = relationship("Court", back_populates="venue", cascade="all, delete-orphan")
    operating_hours = relationship(
        "OperatingHours",
        back_populates="venue",
        cascade="all, delete-orphan",
        order_by="OperatingHours.day_of_week",
    )
