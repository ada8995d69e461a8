from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import logging
import uuid

from .config import settings
from .database import create_tables
from .utils.logging_config import setup_logging, set_request_context, clear_request_context
from .utils.rate_limiter import limiter
from .services.cache_scheduler import start_cache_scheduler, stop_cache_scheduler

from .routers import pricing, webhooks, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json or settings.is_production)

    logger.info("🚀 Starting staysync-backend...")
    logger.info(f"📍 Environment: {settings.environment}")
    logger.info(f"🔐 CORS Origins: {settings.cors_origins}")

    create_tables()
    logger.info("✅ Database ready")

    scheduler_started = False
    if not settings.sync_enabled:
        logger.warning("⚠️  Cache sync disabled, scheduler not started")
    elif not settings.has_ru_credentials:
        logger.warning("⚠️  Rentals United credentials missing, scheduler not started")
    else:
        scheduler_started = start_cache_scheduler()

    yield

    # Shutdown
    logger.info("👋 Shutting down staysync-backend...")
    if scheduler_started:
        stop_cache_scheduler()


# Create FastAPI app
app = FastAPI(
    title="StaySync Backend API",
    description="Availability and pricing cache for Rentals United properties",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIdMiddleware)


# Rate limit handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests, try again later"}
    )


# Include routers
app.include_router(health.router)
app.include_router(pricing.router)
app.include_router(webhooks.router)


@app.get("/")
async def root():
    return {
        "message": "StaySync Backend API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running"
    }
