from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from api.deps import PageParams, get_actor_id, pagination
from api.responses import borrower_to_response, loan_to_response
from database import get_db
from models import Borrower, Loan
from schemas.borrower import BorrowerCreate, BorrowerUpdate
from services import borrowers as borrower_service

router = APIRouter(prefix="/api/borrowers", tags=["borrowers"])


async def _load_with_loans(db: AsyncSession, borrower_id: str) -> Borrower:
    await borrower_service.get_borrower(db, borrower_id)
    result = await db.execute(
        select(Borrower)
        .options(selectinload(Borrower.loans).selectinload(Loan.payments))
        .where(Borrower.id == borrower_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


def _with_loans(b: Borrower) -> dict:
    return borrower_to_response(b, [loan_to_response(l, include_borrower=False) for l in b.loans])


@router.get("")
async def list_borrowers(
    search: Optional[str] = Query(None),
    page: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    where = []
    if search:
        pattern = f"%{search.lower()}%"
        where.append(
            or_(
                func.lower(Borrower.name).like(pattern),
                func.lower(Borrower.email).like(pattern),
                Borrower.phone.like(pattern),
            )
        )
    total = await db.scalar(select(func.count(Borrower.id)).where(*where))
    result = await db.execute(
        select(Borrower)
        .options(selectinload(Borrower.loans).selectinload(Loan.payments))
        .where(*where)
        .order_by(Borrower.created_at.desc())
        .offset(page.offset)
        .limit(page.limit)
    )
    return {
        "borrowers": [_with_loans(b) for b in result.scalars().all()],
        "pagination": pagination(page, total or 0),
    }


@router.get("/{borrower_id}")
async def get_borrower(borrower_id: str, db: AsyncSession = Depends(get_db)):
    return _with_loans(await _load_with_loans(db, borrower_id))


@router.post("", status_code=201)
async def create_borrower(
    body: BorrowerCreate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    borrower = await borrower_service.create_borrower(db, body.model_dump(), actor_id)
    return borrower_to_response(borrower, [])


@router.patch("/{borrower_id}")
async def update_borrower(
    borrower_id: str,
    body: BorrowerUpdate,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    await borrower_service.update_borrower(db, borrower_id, body.model_dump(exclude_unset=True), actor_id)
    return _with_loans(await _load_with_loans(db, borrower_id))


@router.delete("/{borrower_id}")
async def delete_borrower(
    borrower_id: str,
    db: AsyncSession = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    await borrower_service.delete_borrower(db, borrower_id, actor_id)
    return {"success": True}
