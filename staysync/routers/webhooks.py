"""
Webhooks Router

Receives Rentals United push notifications (XML, method name in the
ru-rlnm-method header) and applies them to bookings and the daily cache.
"""

import logging
import secrets
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..utils.rate_limiter import limiter, get_rate_limit
from ..services.errors import UpstreamError
from ..services.reservation_events import ReservationEventHandler
from ..services.ru_parser import parse_notification_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


def verify_notification_password(method: str, body: bytes) -> bool:
    """
    Compare the notification password with RU_WEBHOOK_HASH.
    Returns True when no hash is configured.
    """
    if not settings.ru_webhook_hash:
        return True

    password = parse_notification_password(method, body)
    if not password:
        logger.warning("Missing password in RU notification")
        return False

    return secrets.compare_digest(password.strip(), settings.ru_webhook_hash)


@router.post("/rentals-united")
@limiter.limit(get_rate_limit("webhook"))
async def rentals_united_webhook(
    request: Request,
    ru_rlnm_method: Optional[str] = Header(None, alias="ru-rlnm-method"),
    db: Session = Depends(get_db)
):
    """Handle LNM_* reservation notifications"""
    if not ru_rlnm_method:
        raise HTTPException(status_code=400, detail="Missing ru-rlnm-method header")

    body = await request.body()
    logger.info(f"📥 RU webhook received: {ru_rlnm_method} ({len(body)} bytes)")

    try:
        if not verify_notification_password(ru_rlnm_method, body):
            logger.warning("❌ Invalid RU webhook authentication")
            raise HTTPException(status_code=401, detail="Invalid authentication")

        result = ReservationEventHandler(db).dispatch(ru_rlnm_method, body)
    except UpstreamError as e:
        logger.warning(f"Rejected RU notification {ru_rlnm_method}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "action": result.action,
        "booking_id": result.booking_id,
        "cache_records_updated": result.cache_records_updated
    }
