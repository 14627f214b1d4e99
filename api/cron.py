from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from services.notifications import Notifier, get_notifier
from services.overdue import send_overdue_notifications
from utils.case import to_json_safe

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Bearer CRON_SECRET; open only in development when no secret is configured."""
    if not settings.cron_secret:
        if settings.environment == "development":
            return
        logger.warning("Cron call rejected: CRON_SECRET is not configured")
        raise HTTPException(status_code=401, detail="Unauthorized")
    if authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/overdue-notifications", dependencies=[Depends(verify_cron_secret)])
async def overdue_notifications(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    summary = await send_overdue_notifications(db, notifier)
    return to_json_safe(summary)
