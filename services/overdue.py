"""
Overdue sweep: emails a payment reminder for every ACTIVE loan past its due date
with a balance left. Read-only apart from the single audit entry it writes.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Loan, LoanStatus
from services import audit, notifications
from services.accounting import calculate_loan_details
from services.notifications import Notifier
from utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)


async def find_overdue_loans(session: AsyncSession, now: datetime | None = None) -> list[Loan]:
    now = as_utc(now) or utcnow()
    result = await session.execute(
        select(Loan)
        .options(selectinload(Loan.borrower), selectinload(Loan.payments))
        .where(Loan.status == LoanStatus.ACTIVE.value, Loan.due_date < now)
        .order_by(Loan.due_date)
    )
    return [loan for loan in result.scalars().all() if calculate_loan_details(loan, now).balance > 0]


async def send_overdue_notifications(
    session: AsyncSession, notifier: Notifier, now: datetime | None = None
) -> dict[str, Any]:
    now = as_utc(now) or utcnow()
    loans = await find_overdue_loans(session, now)
    sent = 0
    skipped = 0
    errors: list[dict[str, str]] = []

    for loan in loans:
        email = loan.borrower.email if loan.borrower else None
        if not email:
            skipped += 1
            continue
        calc = calculate_loan_details(loan, now)
        data = {
            "name": loan.borrower.name,
            "loan_amount": loan.amount,
            "amount_due": calc.balance,
            "due_date": as_utc(loan.due_date).date().isoformat(),
        }
        try:
            ok = await asyncio.to_thread(notifier.send, notifications.PAYMENT_REMINDER, email, data)
        except Exception as e:
            logger.exception("Reminder for loan %s raised", loan.id)
            errors.append({"loan_id": loan.id, "error": str(e)})
            continue
        if ok:
            sent += 1
        else:
            errors.append({"loan_id": loan.id, "error": "Email not sent"})

    summary = {
        "overdue_loans": len(loans),
        "notifications_sent": sent,
        "skipped_without_email": skipped,
        "errors": errors,
    }
    await audit.record(session, "CRON_OVERDUE_NOTIFICATIONS", summary)
    logger.info(
        "Overdue sweep: %d overdue, %d reminders sent, %d failed", len(loans), sent, len(errors)
    )
    return summary
