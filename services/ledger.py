"""
Payment ledger: records, corrects and removes payments against a loan.

Each operation locks the loan row, checks the balance, writes the payment change and
re-derives the loan's cached status in the same transaction, so a committed payment
total is never visible without the status that reflects it.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Loan, LoanStatus, Payment
from services import audit
from services.accounting import reconciled_status, total_owed, total_paid
from services.errors import NotFoundError, PreconditionError
from services.loans import get_loan
from utils.dates import as_utc, utcnow
from utils.money import round_money

logger = logging.getLogger(__name__)

MSG_PAYMENT_NOT_FOUND = "Payment not found"


def recompute_loan_status(loan: Loan) -> str:
    """Write the derived status onto the loan; returns the new status."""
    status = reconciled_status(loan).value
    if status != loan.status:
        logger.info("Loan %s status %s -> %s", loan.id, loan.status, status)
        loan.status = status
    return status


async def get_payment(session: AsyncSession, payment_id: str) -> Payment:
    result = await session.execute(select(Payment).where(Payment.id == payment_id))
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFoundError(MSG_PAYMENT_NOT_FOUND)
    return payment


async def _locked_loan_for_payment(session: AsyncSession, payment_id: str) -> tuple[Loan, Payment]:
    payment = await get_payment(session, payment_id)
    loan = await get_loan(session, payment.loan_id, for_update=True)
    return loan, payment


async def record_payment(session: AsyncSession, data: dict[str, Any], actor_id: str | None = None) -> Payment:
    amount = round_money(data["amount"])
    if amount <= 0:
        raise PreconditionError("Amount must be positive")

    loan = await get_loan(session, data["loan_id"], for_update=True)
    if loan.status == LoanStatus.PAID.value:
        raise PreconditionError("Cannot add payment to a paid loan")

    owed = total_owed(loan.amount, loan.interest_rate)
    balance = owed - total_paid(loan.payments)
    if amount > balance:
        raise PreconditionError("Payment amount exceeds remaining balance")

    payment = Payment(
        id=f"pay-{uuid.uuid4().hex[:12]}",
        amount=amount,
        paid_at=as_utc(data.get("paid_at")) or utcnow(),
        notes=data.get("notes"),
        method=data.get("method"),
    )
    loan.payments.append(payment)
    status = recompute_loan_status(loan)
    await session.flush()

    await audit.record(
        session,
        "PAYMENT_RECEIVED",
        {"payment_id": payment.id, "loan_id": loan.id, "amount": amount, "loan_status": status},
        actor_id,
    )
    return payment


async def update_payment(
    session: AsyncSession, payment_id: str, changes: dict[str, Any], actor_id: str | None = None
) -> Payment:
    loan, payment = await _locked_loan_for_payment(session, payment_id)

    if changes.get("amount") is not None:
        new_amount = round_money(changes["amount"])
        if new_amount <= 0:
            raise PreconditionError("Amount must be positive")
        others = total_paid(p for p in loan.payments if p.id != payment.id)
        if others + new_amount > total_owed(loan.amount, loan.interest_rate):
            raise PreconditionError("Updated payment amount would exceed total owed")
        payment.amount = new_amount
    if changes.get("paid_at") is not None:
        payment.paid_at = as_utc(changes["paid_at"])
    if "notes" in changes:
        payment.notes = changes["notes"]
    if "method" in changes:
        payment.method = changes["method"]

    status = recompute_loan_status(loan)
    await session.flush()

    await audit.record(
        session,
        "PAYMENT_UPDATED",
        {"payment_id": payment.id, "loan_id": loan.id, "changes": changes, "loan_status": status},
        actor_id,
    )
    return payment


async def delete_payment(session: AsyncSession, payment_id: str, actor_id: str | None = None) -> Loan:
    """Remove a payment; the loan may revert from PAID to ACTIVE. Returns the loan."""
    loan, payment = await _locked_loan_for_payment(session, payment_id)
    amount = payment.amount

    loan.payments.remove(payment)
    await session.delete(payment)
    status = recompute_loan_status(loan)
    await session.flush()

    await audit.record(
        session,
        "PAYMENT_DELETED",
        {"payment_id": payment_id, "loan_id": loan.id, "amount": amount, "loan_status": status},
        actor_id,
    )
    return loan
