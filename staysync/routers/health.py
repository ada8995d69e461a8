"""
Health Check Endpoint

/health - process is up, database reachable, scheduler state
"""

import time
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..services.cache_scheduler import get_scheduler_status

router = APIRouter(prefix="/health", tags=["Health"])


def get_db_health(db: Session) -> dict:
    """Check database connectivity and latency"""
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "up",
            "latency_ms": round(latency_ms, 2),
            "type": db.get_bind().dialect.name
        }
    except SQLAlchemyError as e:
        return {
            "status": "down",
            "error": str(e)[:100]
        }


@router.get("")
async def health_check(db: Session = Depends(get_db)):
    database = get_db_health(db)
    scheduler = get_scheduler_status()
    return {
        "status": "healthy" if database["status"] == "up" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "database": database,
        "scheduler": {
            "enabled": settings.sync_enabled,
            "running": scheduler["running"],
        },
    }
