"""
Sync Schemas

Responses for the operator endpoints (manual sync, sync status).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class UnitSyncErrorResponse(BaseModel):
    unit_id: str
    ru_property_id: str
    stage: str
    message: str


class SyncRunResponse(BaseModel):
    """Result of one full pass"""
    trigger: str
    status: str
    started_at: datetime
    success_count: int
    error_count: int
    skipped_count: int
    duration_seconds: float
    deleted_count: Optional[int] = None
    errors: List[UnitSyncErrorResponse] = []

    @classmethod
    def from_result(cls, result) -> "SyncRunResponse":
        return cls(**result.to_dict())


class SyncStatusResponse(BaseModel):
    total_records: int
    active_units: int
    expected_records: int
    window_records: int
    coverage_percent: float
    last_synced_at: Optional[datetime] = None
    stale: bool
    health: str
    last_run: Optional[Dict[str, Any]] = None
    scheduler: Dict[str, Any] = {}
