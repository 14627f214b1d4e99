from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.responses import borrower_summary, loan_to_response, payment_to_response
from database import get_db
from services import reports
from utils.case import to_json_safe
from utils.dates import isoformat

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/summary")
async def summary_report(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
):
    """Portfolio stats for loans issued in the range plus recent activity, trends and overdue risk."""
    report = await reports.build_summary(db, start_date, end_date)
    return {
        "portfolioStats": to_json_safe(report["portfolio_stats"].model_dump()),
        "recentActivity": {
            "payments": [
                payment_to_response(
                    p, {"id": p.loan.id, "borrower": borrower_summary(p.loan.borrower)}
                )
                for p in report["recent_payments"]
            ],
            "loans": [loan_to_response(l, include_payments=False) for l in report["recent_loans"]],
        },
        "monthlyTrends": to_json_safe(report["monthly_trends"]),
        "riskAnalysis": report["risk_analysis"],
        "generatedAt": isoformat(report["generated_at"]),
    }


@router.get("/monthly")
async def monthly_report(db: AsyncSession = Depends(get_db)):
    return to_json_safe(await reports.build_monthly(db))
