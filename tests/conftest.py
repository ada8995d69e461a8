"""
Shared fixtures: an in-memory SQLite database per test and small
factories for units and cached days.
"""

import os
import sys
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SYNC_UNIT_DELAY_SECONDS", "0")
os.environ.setdefault("SYNC_ENABLED", "false")

from staysync.database import Base  # noqa: E402
from staysync import models  # noqa: E402,F401
from staysync.models.unit import Unit  # noqa: E402
from staysync.services.daily_cache_store import CacheDay, DailyCacheStore  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_unit(db):
    """Create and commit a Unit."""
    def _make_unit(unit_id, ru_property_id=None, name=None, is_active=True, building_id=None, room_type=None):
        unit = Unit(
            id=unit_id,
            name=name or f"Unit {unit_id}",
            ru_property_id=ru_property_id,
            is_active=is_active,
            building_id=building_id,
            room_type=room_type,
        )
        db.add(unit)
        db.commit()
        return unit
    return _make_unit


@pytest.fixture
def cache_days(db):
    """Write cached days for a unit: cache_days(unit, start, [prices], available=True)."""
    def _cache_days(unit, start, prices, available=True):
        days = [
            CacheDay(
                date=start + timedelta(days=offset),
                is_available=available,
                price_per_night=Decimal(str(price)),
            )
            for offset, price in enumerate(prices)
        ]
        DailyCacheStore(db).upsert_days(unit.id, unit.ru_property_id or "", days)
        db.commit()
        return days
    return _cache_days


@pytest.fixture
def june_first():
    return date(2025, 6, 1)
