from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Loan, LoanApplication, LoanStatus, Payment
from services import audit
from services.accounting import reconciled_status, status_for_total_paid, total_owed, total_paid
from services.borrowers import get_borrower
from services.errors import NotFoundError, PreconditionError
from utils.dates import as_utc, utcnow
from utils.money import round_money, to_decimal

MSG_LOAN_NOT_FOUND = "Loan not found"


async def get_loan(session: AsyncSession, loan_id: str, *, for_update: bool = False) -> Loan:
    """Load a loan with borrower and payments; `for_update` takes a row lock where the dialect has one."""
    stmt = (
        select(Loan)
        .options(selectinload(Loan.payments), selectinload(Loan.borrower))
        .where(Loan.id == loan_id)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    loan = result.scalar_one_or_none()
    if not loan:
        raise NotFoundError(MSG_LOAN_NOT_FOUND)
    return loan


def _validate_terms(amount, interest_rate, issued_at: datetime, due_date: datetime) -> None:
    if to_decimal(amount) <= 0:
        raise PreconditionError("Amount must be positive")
    if to_decimal(interest_rate) < 0:
        raise PreconditionError("Interest rate cannot be negative")
    if as_utc(due_date) <= as_utc(issued_at):
        raise PreconditionError("Due date must be after the issue date")


async def create_loan(session: AsyncSession, data: dict[str, Any], actor_id: str | None = None) -> Loan:
    borrower = await get_borrower(session, data["borrower_id"])
    issued_at = as_utc(data.get("issued_at")) or utcnow()
    due_date = as_utc(data["due_date"])
    rate = data.get("interest_rate") or 0
    _validate_terms(data["amount"], rate, issued_at, due_date)

    loan = Loan(
        id=f"loan-{uuid.uuid4().hex[:12]}",
        borrower=borrower,
        amount=round_money(data["amount"]),
        interest_rate=to_decimal(rate),
        issued_at=issued_at,
        due_date=due_date,
        status=LoanStatus.ACTIVE.value,
        notes=data.get("notes"),
        payments=[],
    )
    session.add(loan)
    await session.flush()
    await audit.record(
        session,
        "LOAN_CREATED",
        {"loan_id": loan.id, "borrower_id": borrower.id, "amount": loan.amount},
        actor_id,
    )
    return loan


def _reconcile_status(loan: Loan, requested: LoanStatus | None) -> str:
    """
    Status after an edit. Money edits re-derive ACTIVE/PAID from payments (DEFAULTED is kept
    while a balance remains); an explicit status must agree with the balance.
    """
    if requested is None:
        return reconciled_status(loan).value
    derived = status_for_total_paid(total_paid(loan.payments), total_owed(loan.amount, loan.interest_rate))
    if requested == LoanStatus.PAID and derived != LoanStatus.PAID:
        raise PreconditionError("Loan cannot be marked PAID while a balance remains")
    if requested != LoanStatus.PAID and derived == LoanStatus.PAID:
        raise PreconditionError(f"Loan is fully paid and cannot be marked {requested.value}")
    return requested.value


async def update_loan(
    session: AsyncSession, loan_id: str, changes: dict[str, Any], actor_id: str | None = None
) -> Loan:
    loan = await get_loan(session, loan_id, for_update=True)
    previous_status = loan.status

    if "amount" in changes:
        loan.amount = round_money(changes["amount"])
    if "interest_rate" in changes:
        loan.interest_rate = to_decimal(changes["interest_rate"])
    if "due_date" in changes:
        loan.due_date = as_utc(changes["due_date"])
    if "notes" in changes:
        loan.notes = changes["notes"]
    _validate_terms(loan.amount, loan.interest_rate, loan.issued_at, loan.due_date)

    requested = changes.get("status")
    loan.status = _reconcile_status(loan, LoanStatus(requested) if requested else None)
    await session.flush()

    await audit.record(session, "LOAN_UPDATED", {"loan_id": loan.id, "changes": changes}, actor_id)
    if loan.status != previous_status:
        await audit.record(
            session,
            "LOAN_STATUS_UPDATED",
            {"loan_id": loan.id, "previous_status": previous_status, "new_status": loan.status},
            actor_id,
        )
    return loan


async def delete_loan(session: AsyncSession, loan_id: str, actor_id: str | None = None) -> None:
    loan = await get_loan(session, loan_id, for_update=True)
    payment_count = await session.scalar(select(func.count(Payment.id)).where(Payment.loan_id == loan_id))
    if payment_count:
        raise PreconditionError("Cannot delete loan with existing payments")
    await session.execute(
        update(LoanApplication).where(LoanApplication.loan_id == loan_id).values(loan_id=None)
    )
    await session.delete(loan)
    await session.flush()
    await audit.record(session, "LOAN_DELETED", {"loan_id": loan_id}, actor_id)

