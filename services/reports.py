"""
Portfolio reporting: the dashboard summary and the month-to-date snapshot.
Figures come from the same accounting functions the ledger uses, so a report
never disagrees with a loan's own balance.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Borrower, Loan, Payment
from services.accounting import calculate_loan_details, calculate_portfolio_stats, overdue_risk_bucket
from utils.dates import as_utc, month_start, utcnow
from utils.money import to_decimal

RECENT_ACTIVITY_LIMIT = 10
TREND_MONTHS = 12


async def _loans_with_payments(session: AsyncSession, *where) -> list[Loan]:
    result = await session.execute(
        select(Loan).options(selectinload(Loan.payments), selectinload(Loan.borrower)).where(*where)
    )
    return list(result.scalars().all())


async def monthly_trends(session: AsyncSession, now: datetime, months: int = TREND_MONTHS) -> list[dict[str, Any]]:
    """Loans issued and payments received per calendar month, oldest first, ending with the current month."""
    trends = []
    for back in range(months - 1, -1, -1):
        start = month_start(now, back)
        end = month_start(now, back - 1)
        issued = await session.scalar(
            select(func.count(Loan.id)).where(Loan.issued_at >= start, Loan.issued_at < end)
        )
        received = await session.scalar(
            select(func.sum(Payment.amount)).where(Payment.paid_at >= start, Payment.paid_at < end)
        )
        trends.append(
            {
                "month": start.strftime("%Y-%m"),
                "loans_issued": issued or 0,
                "payments_received": to_decimal(received),
            }
        )
    return trends


def risk_analysis(loans: list[Loan], now: datetime) -> dict[str, int]:
    buckets = {"lowRisk": 0, "mediumRisk": 0, "highRisk": 0}
    for loan in loans:
        if not calculate_loan_details(loan, now).is_overdue:
            continue
        days_overdue = math.floor((now - as_utc(loan.due_date)).total_seconds() / 86400)
        buckets[overdue_risk_bucket(days_overdue)] += 1
    return buckets


async def build_summary(
    session: AsyncSession,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = as_utc(now) or utcnow()
    where = []
    if start_date:
        where.append(Loan.issued_at >= start_date)
    if end_date:
        where.append(Loan.issued_at <= end_date)
    loans = await _loans_with_payments(session, *where)

    recent_payments = await session.execute(
        select(Payment)
        .options(selectinload(Payment.loan).selectinload(Loan.borrower))
        .order_by(Payment.paid_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    recent_loans = await session.execute(
        select(Loan)
        .options(selectinload(Loan.payments), selectinload(Loan.borrower))
        .order_by(Loan.created_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    )

    return {
        "portfolio_stats": calculate_portfolio_stats(loans, now),
        "recent_payments": list(recent_payments.scalars().all()),
        "recent_loans": list(recent_loans.scalars().all()),
        "monthly_trends": await monthly_trends(session, now),
        "risk_analysis": risk_analysis(loans, now),
        "generated_at": now,
    }


async def build_monthly(session: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    now = as_utc(now) or utcnow()
    start = month_start(now)
    end = month_start(now, -1)
    loans = await _loans_with_payments(session)
    stats = calculate_portfolio_stats(loans, now)

    payments_count, payments_sum = (
        await session.execute(
            select(func.count(Payment.id), func.sum(Payment.amount)).where(
                Payment.paid_at >= start, Payment.paid_at < end
            )
        )
    ).one()
    issued_count, issued_sum = (
        await session.execute(
            select(func.count(Loan.id), func.sum(Loan.amount)).where(Loan.issued_at >= start, Loan.issued_at < end)
        )
    ).one()

    return {
        "month": start.strftime("%Y-%m"),
        "total_loans": stats.total_loans,
        "active_loans": stats.active_loans,
        "overdue_loans": stats.overdue_loans,
        "paid_loans": stats.paid_loans,
        "total_borrowers": await session.scalar(select(func.count(Borrower.id))) or 0,
        "total_disbursed": stats.total_disbursed,
        "total_collected": stats.total_repaid,
        "outstanding_balance": stats.total_outstanding,
        "payments_this_month": {"count": payments_count or 0, "amount": to_decimal(payments_sum)},
        "disbursements_this_month": {"count": issued_count or 0, "amount": to_decimal(issued_sum)},
        "generated_at": now,
    }
