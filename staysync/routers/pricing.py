"""
Pricing API Router

Guest-facing search and quote served from the daily cache, plus the
operator endpoints to run a sync and inspect cache health.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..utils.dependencies import require_admin_token
from ..utils.rate_limiter import limiter, get_rate_limit
from ..services.errors import InvalidDateRange, SyncAlreadyRunning, UnitNotFound
from ..services.cache_query_service import CacheQueryService, SearchFilters
from ..services.cache_scheduler import get_scheduler_status, trigger_manual_sync
from ..schemas.pricing import QuoteResponse, SearchResponse, SearchResultResponse
from ..schemas.sync import SyncRunResponse, SyncStatusResponse

router = APIRouter(prefix="/api/pricing", tags=["Pricing"])


# ==================
# Cached reads
# ==================

@router.get("/search", response_model=SearchResponse)
@limiter.limit(get_rate_limit("search"))
async def search_available_units(
    request: Request,
    check_in: date = Query(..., alias="checkIn"),
    check_out: date = Query(..., alias="checkOut"),
    building_id: Optional[str] = Query(None, alias="buildingId"),
    room_type: Optional[str] = Query(None, alias="roomType"),
    db: Session = Depends(get_db)
):
    """Units bookable for every night of the stay, cheapest first"""
    service = CacheQueryService(db)
    try:
        results = service.search(
            check_in,
            check_out,
            SearchFilters(building_id=building_id, room_type=room_type)
        )
    except InvalidDateRange as e:
        raise HTTPException(status_code=422, detail=str(e))

    return SearchResponse(
        check_in=check_in,
        check_out=check_out,
        nights=(check_out - check_in).days,
        count=len(results),
        results=[SearchResultResponse.from_result(result) for result in results]
    )


@router.get("/units/{unit_id}/quote", response_model=QuoteResponse)
@limiter.limit(get_rate_limit("quote"))
async def quote_unit(
    request: Request,
    unit_id: str,
    check_in: date = Query(..., alias="checkIn"),
    check_out: date = Query(..., alias="checkOut"),
    db: Session = Depends(get_db)
):
    """Price a stay for one unit from cached nightly rates"""
    service = CacheQueryService(db)
    try:
        quote = service.quote(unit_id, check_in, check_out)
    except InvalidDateRange as e:
        raise HTTPException(status_code=422, detail=str(e))
    except UnitNotFound:
        raise HTTPException(status_code=404, detail="Unit not found")

    return QuoteResponse.from_quote(quote)


# ==================
# Operator endpoints
# ==================

@router.post("/sync", response_model=SyncRunResponse, dependencies=[Depends(require_admin_token)])
@limiter.limit(get_rate_limit("manual_sync"))
def run_manual_sync(request: Request):
    """Run a full cache sync now (blocks until the pass finishes)"""
    try:
        result = trigger_manual_sync()
    except SyncAlreadyRunning as e:
        raise HTTPException(status_code=409, detail=str(e))

    return SyncRunResponse.from_result(result)


@router.get("/sync-status", response_model=SyncStatusResponse, dependencies=[Depends(require_admin_token)])
async def get_sync_status(db: Session = Depends(get_db)):
    """Cache coverage, freshness and scheduler state"""
    status = CacheQueryService(db).get_sync_status()
    return SyncStatusResponse(
        total_records=status.total_records,
        active_units=status.active_units,
        expected_records=status.expected_records,
        window_records=status.window_records,
        coverage_percent=status.coverage_percent,
        last_synced_at=status.last_synced_at,
        stale=status.stale,
        health=status.health,
        last_run=status.last_run,
        scheduler=get_scheduler_status()
    )
