"""
FastAPI dependencies for the operator (admin) endpoints.
"""

import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from ..config import settings


def require_admin_token(x_admin_token: Optional[str] = Header(default=None)) -> None:
    """
    Guard for manual sync / sync status.

    Disabled (503) when ADMIN_API_TOKEN is not configured.
    """
    if not settings.admin_api_token:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin endpoints are disabled"
        )

    if not x_admin_token or not secrets.compare_digest(x_admin_token, settings.admin_api_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
