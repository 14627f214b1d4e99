from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import Borrower, Loan, LoanApplication, LoanStatus, Payment
from services import audit
from services.errors import NotFoundError, PreconditionError

logger = logging.getLogger(__name__)

MSG_BORROWER_NOT_FOUND = "Borrower not found"


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


async def get_borrower(session: AsyncSession, borrower_id: str) -> Borrower:
    result = await session.execute(select(Borrower).where(Borrower.id == borrower_id))
    borrower = result.scalar_one_or_none()
    if not borrower:
        raise NotFoundError(MSG_BORROWER_NOT_FOUND)
    return borrower


async def _email_taken(session: AsyncSession, email: str, exclude_id: str | None = None) -> bool:
    stmt = select(Borrower.id).where(Borrower.email == email)
    if exclude_id:
        stmt = stmt.where(Borrower.id != exclude_id)
    result = await session.execute(stmt)
    return result.first() is not None


async def create_borrower(session: AsyncSession, data: dict[str, Any], actor_id: str | None = None) -> Borrower:
    email = normalize_email(data.get("email"))
    if email and await _email_taken(session, email):
        raise PreconditionError("A borrower with this email already exists")
    borrower = Borrower(
        id=f"brw-{uuid.uuid4().hex[:12]}",
        name=data["name"],
        email=email,
        phone=data.get("phone"),
        address=data.get("address"),
        notes=data.get("notes"),
    )
    session.add(borrower)
    await session.flush()
    await audit.record(
        session, "BORROWER_CREATED", {"borrower_id": borrower.id, "name": borrower.name}, actor_id
    )
    return borrower


async def update_borrower(
    session: AsyncSession, borrower_id: str, changes: dict[str, Any], actor_id: str | None = None
) -> Borrower:
    borrower = await get_borrower(session, borrower_id)
    if "email" in changes:
        changes = {**changes, "email": normalize_email(changes["email"])}
        if changes["email"] and await _email_taken(session, changes["email"], exclude_id=borrower.id):
            raise PreconditionError("A borrower with this email already exists")
    if changes.get("name") is None:
        changes = {k: v for k, v in changes.items() if k != "name"}
    for key in ("name", "email", "phone", "address", "notes"):
        if key in changes:
            setattr(borrower, key, changes[key])
    await session.flush()
    await audit.record(
        session, "BORROWER_UPDATED", {"borrower_id": borrower.id, "changes": changes}, actor_id
    )
    return borrower


async def delete_borrower(session: AsyncSession, borrower_id: str, actor_id: str | None = None) -> None:
    borrower = await get_borrower(session, borrower_id)
    open_loans = await session.scalar(
        select(func.count(Loan.id)).where(Loan.borrower_id == borrower_id, Loan.status != LoanStatus.PAID.value)
    )
    if open_loans:
        raise PreconditionError("Cannot delete borrower with active loans")

    # Only fully repaid loans remain; they go with the borrower
    paid_loan_ids = list(await session.scalars(select(Loan.id).where(Loan.borrower_id == borrower_id)))
    if paid_loan_ids:
        await session.execute(
            update(LoanApplication).where(LoanApplication.loan_id.in_(paid_loan_ids)).values(loan_id=None)
        )
        await session.execute(delete(Payment).where(Payment.loan_id.in_(paid_loan_ids)))
        await session.execute(delete(Loan).where(Loan.id.in_(paid_loan_ids)))
    await session.execute(delete(Borrower).where(Borrower.id == borrower.id))
    await audit.record(
        session,
        "BORROWER_DELETED",
        {"borrower_id": borrower_id, "deleted_loan_ids": paid_loan_ids},
        actor_id,
    )


async def find_or_create_by_email(
    session: AsyncSession,
    email: str,
    defaults: dict[str, Any],
) -> tuple[Borrower, bool]:
    """
    Return (borrower, created). Idempotent per email: the insert runs in a SAVEPOINT and,
    if the unique email index rejects it because another transaction won the race,
    the existing row is selected instead.
    """
    email = normalize_email(email)
    if not email:
        raise PreconditionError("Email is required to match a borrower")

    existing = await session.execute(select(Borrower).where(Borrower.email == email))
    borrower = existing.scalar_one_or_none()
    if borrower:
        return borrower, False

    borrower = Borrower(
        id=f"brw-{uuid.uuid4().hex[:12]}",
        name=defaults["name"],
        email=email,
        phone=defaults.get("phone"),
        address=defaults.get("address"),
        notes=defaults.get("notes"),
    )
    try:
        async with session.begin_nested():
            session.add(borrower)
    except IntegrityError:
        logger.info("Borrower with email %s created concurrently; reusing it", email)
        existing = await session.execute(select(Borrower).where(Borrower.email == email))
        return existing.scalar_one(), False
    return borrower, True
