"""
Booking Model

Lean booking record: just enough to route reservation notifications
from Rentals United to the daily cache.
"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from ..database import Base


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class BookingSource(str, enum.Enum):
    DIRECT = "direct"
    AIRBNB = "airbnb"
    BOOKING_COM = "booking.com"
    EXPEDIA = "expedia"
    VRBO = "vrbo"
    OTHER = "other"
    UNKNOWN = "unknown"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    unit_id = Column(String(36), ForeignKey("units.id", ondelete="CASCADE"), nullable=False)

    # Rentals United ReservationID (None for bookings not pushed yet)
    ru_reservation_id = Column(String(50), nullable=True, unique=True)

    # Stay - check_out is exclusive (the guest leaves that morning)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    source = Column(String(20), nullable=False, default=BookingSource.DIRECT.value)

    guest_name = Column(String(200), nullable=True)
    number_of_guests = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    unit = relationship("Unit", backref="bookings")

    __table_args__ = (
        Index('ix_bookings_unit_dates', 'unit_id', 'check_in', 'check_out'),
    )

    def __repr__(self):
        return f"<Booking {self.id} unit={self.unit_id} {self.check_in}..{self.check_out} {self.status}>"
