# Services package
from .errors import (
    StaySyncError, UpstreamError, UpstreamUnavailable, UpstreamDataMissing,
    NoPricingConfigured, SyncAlreadyRunning, UnitNotFound, InvalidDateRange
)
from .season_pricing import SeasonPriceInterval, PriceResolution, resolve_price, price_for_date
from .ru_client import RentalsUnitedClient, ReservationRequest, get_ru_client
from .daily_cache_store import DailyCacheStore, CacheDay
from .cache_sync_service import CacheSyncService, SyncRunResult, UnitSyncOutcome, UnitSyncError
from .cache_invalidator import CacheInvalidator
from .reservation_events import ReservationEventHandler, ReservationEventResult
from .cache_scheduler import (
    start_cache_scheduler,
    stop_cache_scheduler,
    get_scheduler_status,
    trigger_manual_sync,
    run_full_sync,
    is_cache_stale
)
from .cache_query_service import CacheQueryService, SearchFilters, SearchResult, Quote, QuoteStatus, SyncStatus

__all__ = [
    "StaySyncError", "UpstreamError", "UpstreamUnavailable", "UpstreamDataMissing",
    "NoPricingConfigured", "SyncAlreadyRunning", "UnitNotFound", "InvalidDateRange",
    "SeasonPriceInterval", "PriceResolution", "resolve_price", "price_for_date",
    "RentalsUnitedClient", "ReservationRequest", "get_ru_client",
    "DailyCacheStore", "CacheDay",
    "CacheSyncService", "SyncRunResult", "UnitSyncOutcome", "UnitSyncError",
    "CacheInvalidator",
    "ReservationEventHandler", "ReservationEventResult",
    "start_cache_scheduler", "stop_cache_scheduler", "get_scheduler_status",
    "trigger_manual_sync", "run_full_sync", "is_cache_stale",
    "CacheQueryService", "SearchFilters", "SearchResult", "Quote", "QuoteStatus", "SyncStatus",
]
