"""
Property Daily Cache Model

Per-unit, per-day availability and nightly price pulled from Rentals United.
Search and quote read only from this table.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Boolean, Numeric, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base


class DailyAvailabilityRecord(Base):
    """
    One row per (unit, date).

    Written by:
    - CacheSyncService (upsert during a sync pass)
    - CacheInvalidator (is_available flips on booking/cancellation)
    """
    __tablename__ = "property_daily_cache"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    unit_id = Column(String(36), ForeignKey("units.id", ondelete="CASCADE"), nullable=False)

    # Denormalized upstream id for filtering without a join
    ru_property_id = Column(String(50), nullable=False, index=True)

    # Calendar day, no time component
    date = Column(Date, nullable=False)

    is_available = Column(Boolean, nullable=False, default=False)

    # Seasonal rate for this exact day
    price_per_night = Column(Numeric(10, 2), nullable=False, default=0)

    # Last successful write (sync or invalidation)
    last_synced = Column(DateTime, nullable=False, default=datetime.utcnow)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    unit = relationship("Unit", backref="daily_cache")

    __table_args__ = (
        UniqueConstraint('unit_id', 'date', name='uq_daily_cache_unit_date'),
        Index('ix_daily_cache_date_available', 'date', 'is_available'),
        Index('ix_daily_cache_last_synced', 'last_synced'),
    )

    def __repr__(self):
        status = "available" if self.is_available else "unavailable"
        return f"<DailyAvailabilityRecord {self.unit_id} {self.date} {status} {self.price_per_night}>"
