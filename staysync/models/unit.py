"""
Unit Model

A single bookable rental managed through Rentals United.
Only the fields the cache engine needs are stored here.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Index
from ..database import Base


class Unit(Base):
    """
    Bookable unit.

    A unit takes part in the daily sync when it is active and has an
    upstream property id.
    """
    __tablename__ = "units"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)

    # Rentals United PropertyID
    ru_property_id = Column(String(50), nullable=True, unique=True)

    building_id = Column(String(36), nullable=True)
    room_type = Column(String(50), nullable=True)  # studio, 1bhk, 2bhk, ...

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_units_building_room_type', 'building_id', 'room_type'),
    )

    @property
    def is_sync_candidate(self) -> bool:
        return bool(self.is_active and self.ru_property_id)

    def __repr__(self):
        return f"<Unit {self.id} ru={self.ru_property_id}>"
