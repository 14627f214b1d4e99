from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.responses import application_to_response, borrower_summary
from api.deps import PageParams, pagination
from database import get_db
from models import ApplicationStatus, LoanApplication
from schemas.application import ApplicationActionRequest, LoanApplicationCreate
from services import workflow
from services.notifications import Notifier, deliver_events, get_notifier
from services.workflow import WorkflowResult


router = APIRouter(prefix="/api/loan-applications", tags=["loan-applications"])


async def _commit_and_notify(
    db: AsyncSession, result: WorkflowResult, background_tasks: BackgroundTasks, notifier: Notifier
) -> None:
    # Mail goes out only once the state change is durable
    await db.commit()
    if result.events:
        background_tasks.add_task(deliver_events, notifier, result.events)


@router.get("")
async def list_applications(
    status: Optional[ApplicationStatus] = Query(None),
    page: PageParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    where = [LoanApplication.status == status.value] if status else []
    total = await db.scalar(select(func.count(LoanApplication.id)).where(*where))
    result = await db.execute(
        select(LoanApplication)
        .where(*where)
        .order_by(LoanApplication.created_at.desc())
        .offset(page.offset)
        .limit(page.limit)
    )
    return {
        "applications": [application_to_response(a) for a in result.scalars().all()],
        "pagination": pagination(page, total or 0),
    }


@router.get("/{application_id}")
async def get_application(application_id: str, db: AsyncSession = Depends(get_db)):
    application = await workflow.get_application(db, application_id)
    return application_to_response(application)


@router.post("", status_code=201)
async def submit_application(
    body: LoanApplicationCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    result = await workflow.submit_application(db, body)
    await _commit_and_notify(db, result, background_tasks, notifier)
    return application_to_response(result.application)


@router.patch("/{application_id}")
async def apply_action(
    application_id: str,
    body: ApplicationActionRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Advance the review workflow by one event (`action` selects which)."""
    result = await workflow.apply_action(db, application_id, body.root)
    await _commit_and_notify(db, result, background_tasks, notifier)
    out = application_to_response(result.application)
    if result.loan is not None:
        out["loan"] = {
            "id": result.loan.id,
            "status": result.loan.status,
            "borrower": borrower_summary(result.borrower),
        }
    return out
