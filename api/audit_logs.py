from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import PageParams, pagination
from api.responses import audit_to_response
from database import get_db
from models import AuditLog

router = APIRouter(prefix="/api/audit-logs", tags=["audit-logs"])


@router.get("")
async def list_audit_logs(
    action: Optional[str] = Query(None),
    page: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    where = [AuditLog.action == action] if action else []
    total = await db.scalar(select(func.count(AuditLog.id)).where(*where))
    result = await db.execute(
        select(AuditLog)
        .where(*where)
        .order_by(AuditLog.created_at.desc())
        .offset(page.offset)
        .limit(page.limit)
    )
    return {
        "auditLogs": [audit_to_response(e) for e in result.scalars().all()],
        "pagination": pagination(page, total or 0),
    }
