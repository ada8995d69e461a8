"""
Rate Limiter Configuration

Guest-facing read endpoints are rate limited per client IP.
Supports in-memory and Redis storage (via slowapi's storage URI).
"""

import os
import logging

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

logger = logging.getLogger(__name__)


def get_real_client_ip(request: Request) -> str:
    """Get real client IP behind reverse proxy"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (original client)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def create_limiter() -> Limiter:
    """
    Create a rate limiter.
    Uses Redis when REDIS_URL is set, otherwise in-memory storage.
    """
    redis_url = os.getenv("REDIS_URL")

    if redis_url:
        logger.info("Using Redis rate limiter storage")
        return Limiter(
            key_func=get_real_client_ip,
            storage_uri=redis_url,
            default_limits=["100/minute"]
        )

    logger.info("📝 Using in-memory rate limiter storage")
    return Limiter(
        key_func=get_real_client_ip,
        default_limits=["100/minute"]
    )


# Global rate limiter instance
limiter = create_limiter()


RATE_LIMITS = {
    # Guest-facing cache reads
    "search": "60/minute",
    "quote": "120/minute",

    # Upstream push notifications
    "webhook": "100/minute",

    # Operator actions
    "manual_sync": "5/minute",
}


def get_rate_limit(operation: str) -> str:
    """Get rate limit for a specific operation."""
    return RATE_LIMITS.get(operation, "100/minute")
