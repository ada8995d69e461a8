"""Initial schema - units, bookings, daily cache, sync runs

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

This migration creates:
- units: bookable units and their Rentals United PropertyID
- bookings: reservations routed to the cache invalidator
- property_daily_cache: one row per (unit, date) with availability and price
- sync_runs: log of cache sync passes
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==================
    # units table
    # ==================
    op.create_table(
        'units',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('ru_property_id', sa.String(50), nullable=True, unique=True),
        sa.Column('building_id', sa.String(36), nullable=True),
        sa.Column('room_type', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_units_building_room_type', 'units', ['building_id', 'room_type'])

    # ==================
    # bookings table
    # ==================
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('unit_id', sa.String(36), sa.ForeignKey('units.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ru_reservation_id', sa.String(50), nullable=True, unique=True),
        sa.Column('check_in', sa.Date, nullable=False),
        sa.Column('check_out', sa.Date, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('source', sa.String(20), nullable=False, server_default='direct'),
        sa.Column('guest_name', sa.String(200), nullable=True),
        sa.Column('number_of_guests', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_bookings_unit_dates', 'bookings', ['unit_id', 'check_in', 'check_out'])

    # ==================
    # property_daily_cache table
    # ==================
    op.create_table(
        'property_daily_cache',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('unit_id', sa.String(36), sa.ForeignKey('units.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ru_property_id', sa.String(50), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('is_available', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('price_per_night', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('last_synced', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('unit_id', 'date', name='uq_daily_cache_unit_date'),
    )
    op.create_index('ix_property_daily_cache_ru_property_id', 'property_daily_cache', ['ru_property_id'])
    op.create_index('ix_daily_cache_date_available', 'property_daily_cache', ['date', 'is_available'])
    op.create_index('ix_daily_cache_last_synced', 'property_daily_cache', ['last_synced'])

    # ==================
    # sync_runs table
    # ==================
    op.create_table(
        'sync_runs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('trigger', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('started_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('finished_at', sa.DateTime, nullable=True),
        sa.Column('duration_seconds', sa.Float, nullable=True),
        sa.Column('success_count', sa.Integer, server_default='0'),
        sa.Column('error_count', sa.Integer, server_default='0'),
        sa.Column('skipped_count', sa.Integer, server_default='0'),
        sa.Column('deleted_count', sa.Integer, nullable=True),
        sa.Column('error_summary', sa.JSON, nullable=True),
    )
    op.create_index('ix_sync_runs_started', 'sync_runs', ['started_at'])


def downgrade() -> None:
    op.drop_index('ix_sync_runs_started', table_name='sync_runs')
    op.drop_table('sync_runs')

    op.drop_index('ix_daily_cache_last_synced', table_name='property_daily_cache')
    op.drop_index('ix_daily_cache_date_available', table_name='property_daily_cache')
    op.drop_index('ix_property_daily_cache_ru_property_id', table_name='property_daily_cache')
    op.drop_table('property_daily_cache')

    op.drop_index('ix_bookings_unit_dates', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('ix_units_building_room_type', table_name='units')
    op.drop_table('units')
