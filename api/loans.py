from __future__ import annotations

from typing import Optional

from dateutil.relativedelta import relativedelta
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.deps import PageParams, get_actor_id, pagination
from api.responses import loan_to_response
from database import get_db
from models import Loan, LoanStatus
from schemas.loan import LoanCreate, LoanUpdate
from services import loans as loan_service
from services.accounting import assess_loan_risk, days_until_due, loan_age_days, monthly_payment, payment_schedule
from utils.case import dict_keys_to_camel
from utils.dates import as_utc, utcnow
from utils.money import money_to_json

router = APIRouter(prefix="/api/loans", tags=["loans"])


def _term_months(loan: Loan) -> int:
    delta = relativedelta(as_utc(loan.due_date), as_utc(loan.issued_at))
    return max(1, delta.years * 12 + delta.months)


@router.get("")
async def list_loans(
    status: Optional[LoanStatus] = Query(None),
    borrower_id: Optional[str] = Query(None, alias="borrowerId"),
    page: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    where = []
    if status:
        where.append(Loan.status == status.value)
    if borrower_id:
        where.append(Loan.borrower_id == borrower_id)
    total = await db.scalar(select(func.count(Loan.id)).where(*where))
    result = await db.execute(
        select(Loan)
        .options(selectinload(Loan.borrower), selectinload(Loan.payments))
        .where(*where)
        .order_by(Loan.created_at.desc())
        .offset(page.offset)
        .limit(page.limit)
    )
    return {
        "loans": [loan_to_response(l) for l in result.scalars().all()],
        "pagination": pagination(page, total or 0),
    }


@router.get("/{loan_id}")
async def get_loan(loan_id: str, db: AsyncSession = Depends(get_db)):
    loan = await loan_service.get_loan(db, loan_id)
    now = utcnow()
    out = loan_to_response(loan, now=now)
    out["daysUntilDue"] = days_until_due(loan.due_date, now)
    out["loanAgeDays"] = loan_age_days(loan.issued_at, now)
    return out


@router.get("/{loan_id}/risk")
async def get_loan_risk(loan_id: str, db: AsyncSession = Depends(get_db)):
    loan = await loan_service.get_loan(db, loan_id)
    return dict_keys_to_camel(assess_loan_risk(loan).model_dump())


@router.get("/{loan_id}/schedule")
async def get_loan_schedule(
    loan_id: str,
    term_months: Optional[int] = Query(None, alias="termMonths", ge=1, le=600),
    db: AsyncSession = Depends(get_db),
):
    """Amortization table at the loan's rate; the term defaults to issue date -> due date."""
    loan = await loan_service.get_loan(db, loan_id)
    months = term_months or _term_months(loan)
    schedule = payment_schedule(loan.amount, loan.interest_rate, months, as_utc(loan.issued_at))
    return {
        "loanId": loan.id,
        "termMonths": months,
        "monthlyPayment": money_to_json(monthly_payment(loan.amount, loan.interest_rate, months)),
        "schedule": [
            {
                "paymentNumber": e.payment_number,
                "dueDate": e.due_date.isoformat(),
                "paymentAmount": money_to_json(e.payment_amount),
                "principalAmount": money_to_json(e.principal_amount),
                "interestAmount": money_to_json(e.interest_amount),
                "remainingBalance": money_to_json(e.remaining_balance),
            }
            for e in schedule
        ],
    }


@router.post("", status_code=201)
async def create_loan(
    body: LoanCreate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    loan = await loan_service.create_loan(db, body.model_dump(), actor_id)
    return loan_to_response(loan)


@router.patch("/{loan_id}")
async def update_loan(
    loan_id: str,
    body: LoanUpdate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "notes"}
    loan = await loan_service.update_loan(db, loan_id, changes, actor_id)
    return loan_to_response(loan)


@router.delete("/{loan_id}")
async def delete_loan(
    loan_id: str,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    await loan_service.delete_loan(db, loan_id, actor_id)
    return {"success": True}
