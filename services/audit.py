"""
Append-only audit trail written alongside every state-changing operation.
The entry is inserted inside a SAVEPOINT so a failed audit write is logged
and discarded without rolling back the mutation it describes.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import AuditLog
from utils.case import to_json_safe

logger = logging.getLogger(__name__)


async def record(
    session: AsyncSession,
    action: str,
    payload: dict[str, Any] | None = None,
    actor_id: str | None = None,
) -> AuditLog | None:
    entry = AuditLog(
        id=f"audit-{uuid.uuid4().hex[:12]}",
        action=action,
        actor_id=actor_id,
        payload=to_json_safe(payload or {}),
    )
    try:
        async with session.begin_nested():
            session.add(entry)
    except SQLAlchemyError:
        logger.exception("Failed to write audit entry %s", action)
        return None
    return entry
