"""
Sync Run Model

Append-only log of cache sync passes (scheduled, manual or script).
"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Float, JSON, Index
from ..database import Base


class SyncRunStatus(str, enum.Enum):
    COMPLETED = "completed"  # every unit synced or skipped
    PARTIAL = "partial"      # at least one unit failed
    FAILED = "failed"        # the pass itself could not run


class SyncRun(Base):
    __tablename__ = "sync_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    trigger = Column(String(20), nullable=False)  # scheduled, manual, script
    status = Column(String(20), nullable=False)

    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    finished_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    success_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    skipped_count = Column(Integer, default=0)
    deleted_count = Column(Integer, nullable=True)  # None when cleanup failed

    # [{"unit_id", "ru_property_id", "stage", "message"}, ...]
    error_summary = Column(JSON, nullable=True)

    __table_args__ = (
        Index('ix_sync_runs_started', 'started_at'),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trigger": self.trigger,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
            "deleted_count": self.deleted_count,
        }

    def __repr__(self):
        return f"<SyncRun {self.trigger} {self.status} ok={self.success_count} err={self.error_count}>"
