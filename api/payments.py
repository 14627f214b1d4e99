from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.deps import PageParams, get_actor_id, pagination
from api.responses import borrower_summary, loan_to_response, payment_to_response
from database import get_db
from models import Loan, Payment
from schemas.payment import PaymentCreate, PaymentUpdate
from services import ledger
from services.loans import get_loan

router = APIRouter(prefix="/api/payments", tags=["payments"])


def _loan_brief(loan: Loan) -> dict:
    return {
        "id": loan.id,
        "status": loan.status,
        "borrower": borrower_summary(loan.borrower),
    }


async def _payment_with_loan(db: AsyncSession, payment: Payment) -> dict:
    loan = await get_loan(db, payment.loan_id)
    return payment_to_response(payment, loan_to_response(loan, include_payments=False))


@router.get("")
async def list_payments(
    loan_id: Optional[str] = Query(None, alias="loanId"),
    page: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    where = [Payment.loan_id == loan_id] if loan_id else []
    total = await db.scalar(select(func.count(Payment.id)).where(*where))
    result = await db.execute(
        select(Payment)
        .options(selectinload(Payment.loan).selectinload(Loan.borrower))
        .where(*where)
        .order_by(Payment.paid_at.desc())
        .offset(page.offset)
        .limit(page.limit)
    )
    return {
        "payments": [payment_to_response(p, _loan_brief(p.loan)) for p in result.scalars().all()],
        "pagination": pagination(page, total or 0),
    }


@router.get("/{payment_id}")
async def get_payment(payment_id: str, db: AsyncSession = Depends(get_db)):
    payment = await ledger.get_payment(db, payment_id)
    return await _payment_with_loan(db, payment)


@router.post("", status_code=201)
async def create_payment(
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    payment = await ledger.record_payment(db, body.model_dump(), actor_id)
    return await _payment_with_loan(db, payment)


@router.patch("/{payment_id}")
async def update_payment(
    payment_id: str,
    body: PaymentUpdate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    payment = await ledger.update_payment(db, payment_id, body.model_dump(exclude_unset=True), actor_id)
    return await _payment_with_loan(db, payment)


@router.delete("/{payment_id}")
async def delete_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    loan = await ledger.delete_payment(db, payment_id, actor_id)
    return {"success": True, "loan": loan_to_response(loan, include_payments=False)}
