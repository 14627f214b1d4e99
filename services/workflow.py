"""
Loan application review workflow.

    SUBMITTED -> UNDER_REVIEW -> CONDITIONALLY_APPROVED -> DOCUMENTS_SIGNED -> APPROVED -> DISBURSED
    REJECTED is reachable from SUBMITTED, UNDER_REVIEW, CONDITIONALLY_APPROVED and DOCUMENTS_SIGNED.

Every status change is a compare-and-set UPDATE guarded by the expected current status,
so two concurrent transitions on one application cannot both apply. Notifications are
returned as events for the caller to deliver after commit.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, assert_never

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings, settings as default_settings
from models import ApplicationStatus, Borrower, Loan, LoanApplication, LoanStatus
from schemas.application import (
    ApplicationAction,
    ConditionalApprove,
    Disburse,
    FinalApprove,
    LoanApplicationCreate,
    Reject,
    SignDocuments,
    StartReview,
)
from services import audit, notifications
from services.borrowers import find_or_create_by_email
from services.errors import NotFoundError, PreconditionError
from services.notifications import NotificationEvent
from utils.dates import add_months, as_utc, utcnow
from utils.money import round_money

logger = logging.getLogger(__name__)

MSG_APPLICATION_NOT_FOUND = "Application not found"

REJECTABLE = (
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.CONDITIONALLY_APPROVED,
    ApplicationStatus.DOCUMENTS_SIGNED,
)


@dataclass
class WorkflowResult:
    application: LoanApplication
    events: list[NotificationEvent] = field(default_factory=list)
    borrower: Borrower | None = None
    loan: Loan | None = None


async def get_application(session: AsyncSession, application_id: str) -> LoanApplication:
    result = await session.execute(select(LoanApplication).where(LoanApplication.id == application_id))
    application = result.scalar_one_or_none()
    if not application:
        raise NotFoundError(MSG_APPLICATION_NOT_FOUND)
    return application


async def submit_application(session: AsyncSession, body: LoanApplicationCreate) -> WorkflowResult:
    application = LoanApplication(
        id=f"lapp-{uuid.uuid4().hex[:12]}",
        status=ApplicationStatus.SUBMITTED.value,
        full_name=body.full_name,
        email=body.email.lower(),
        phone=body.phone,
        address=body.address,
        employment_status=body.employment_status,
        monthly_income=round_money(body.monthly_income),
        loan_amount=round_money(body.loan_amount),
        loan_purpose=body.loan_purpose,
        documents=body.documents,
    )
    session.add(application)
    await session.flush()
    await audit.record(
        session,
        "LOAN_APPLICATION_SUBMITTED",
        {
            "application_id": application.id,
            "full_name": application.full_name,
            "loan_amount": application.loan_amount,
        },
    )
    logger.info("Application %s submitted for %s", application.id, application.loan_amount)
    event = NotificationEvent(
        notifications.APPLICATION_RECEIVED,
        application.email,
        {"name": application.full_name, "loan_amount": application.loan_amount},
    )
    return WorkflowResult(application=application, events=[event])


async def _transition(
    session: AsyncSession,
    application: LoanApplication,
    allowed: tuple[ApplicationStatus, ...],
    target: ApplicationStatus,
    values: dict[str, Any],
    message: str,
    now: datetime,
) -> None:
    """Move `application` to `target` only if its persisted status is still one of `allowed`."""
    allowed_values = [s.value for s in allowed]
    if application.status not in allowed_values:
        raise PreconditionError(message)
    stmt = (
        update(LoanApplication)
        .where(LoanApplication.id == application.id, LoanApplication.status.in_(allowed_values))
        .values(status=target.value, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:
        # Another transaction moved it first
        raise PreconditionError(message)
    await session.refresh(application)
    logger.info("Application %s -> %s", application.id, target.value)


async def apply_action(
    session: AsyncSession,
    application_id: str,
    action: ApplicationAction,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> WorkflowResult:
    settings = settings or default_settings
    now = as_utc(now) or utcnow()
    application = await get_application(session, application_id)
    result = WorkflowResult(application=application)

    match action:
        case StartReview():
            await _transition(
                session,
                application,
                (ApplicationStatus.SUBMITTED,),
                ApplicationStatus.UNDER_REVIEW,
                {"reviewed_by": action.reviewed_by, "reviewed_at": now, "review_notes": action.review_notes},
                "Application must be in SUBMITTED status",
                now,
            )
            await audit.record(
                session, "LOAN_APPLICATION_UNDER_REVIEW", {"application_id": application.id}, action.reviewed_by
            )

        case ConditionalApprove():
            await _transition(
                session,
                application,
                (ApplicationStatus.UNDER_REVIEW,),
                ApplicationStatus.CONDITIONALLY_APPROVED,
                {
                    "reviewed_by": action.reviewed_by,
                    "reviewed_at": now,
                    "conditional_approval_notes": action.conditional_approval_notes,
                    "required_documents": action.required_documents,
                },
                "Application must be under review",
                now,
            )
            await audit.record(
                session,
                "LOAN_APPLICATION_CONDITIONALLY_APPROVED",
                {"application_id": application.id, "required_documents": action.required_documents},
                action.reviewed_by,
            )
            result.events.append(
                NotificationEvent(
                    notifications.CONDITIONALLY_APPROVED,
                    application.email,
                    {
                        "name": application.full_name,
                        "loan_amount": application.loan_amount,
                        "conditions": action.conditional_approval_notes,
                        "required_documents": action.required_documents,
                    },
                )
            )

        case Reject():
            await _transition(
                session,
                application,
                REJECTABLE,
                ApplicationStatus.REJECTED,
                {"reviewed_by": action.reviewed_by, "reviewed_at": now, "review_notes": action.review_notes},
                "Cannot reject application in current status",
                now,
            )
            await audit.record(
                session,
                "LOAN_APPLICATION_REJECTED",
                {"application_id": application.id, "reason": action.review_notes},
                action.reviewed_by,
            )
            result.events.append(
                NotificationEvent(
                    notifications.REJECTED,
                    application.email,
                    {"name": application.full_name, "reason": action.review_notes},
                )
            )

        case SignDocuments():
            await _transition(
                session,
                application,
                (ApplicationStatus.CONDITIONALLY_APPROVED,),
                ApplicationStatus.DOCUMENTS_SIGNED,
                {"signed_documents": action.signed_documents, "documents_signed_at": now},
                "Application must be conditionally approved",
                now,
            )
            await audit.record(
                session,
                "LOAN_APPLICATION_DOCUMENTS_SIGNED",
                {"application_id": application.id, "documents": action.signed_documents},
                action.signed_by,
            )

        case FinalApprove():
            await _final_approve(session, application, action, now, settings, result)

        case Disburse():
            await _transition(
                session,
                application,
                (ApplicationStatus.APPROVED,),
                ApplicationStatus.DISBURSED,
                {
                    "disbursed_by": action.disbursed_by,
                    "disbursed_at": now,
                    "disbursement_amount": round_money(action.disbursement_amount),
                    "disbursement_method": action.disbursement_method,
                    "disbursement_reference": action.disbursement_reference,
                },
                "Application must be approved before disbursement",
                now,
            )
            await audit.record(
                session,
                "LOAN_APPLICATION_DISBURSED",
                {
                    "application_id": application.id,
                    "amount": action.disbursement_amount,
                    "method": action.disbursement_method,
                    "reference": action.disbursement_reference,
                },
                action.disbursed_by,
            )

        case _:
            assert_never(action)

    return result


async def _final_approve(
    session: AsyncSession,
    application: LoanApplication,
    action: FinalApprove,
    now: datetime,
    settings: Settings,
    result: WorkflowResult,
) -> None:
    # Claim the transition first so a racing approval fails before creating anything
    await _transition(
        session,
        application,
        (ApplicationStatus.DOCUMENTS_SIGNED,),
        ApplicationStatus.APPROVED,
        {"final_approved_by": action.final_approved_by, "final_approved_at": now},
        "Documents must be signed before final approval",
        now,
    )

    borrower, created = await find_or_create_by_email(
        session,
        application.email,
        {
            "name": application.full_name,
            "phone": application.phone,
            "address": application.address,
            "notes": f"Employment: {application.employment_status}, Monthly Income: ${application.monthly_income}",
        },
    )

    # Application-sourced loans carry the configured policy rate (0% unless changed)
    loan = Loan(
        id=f"loan-{uuid.uuid4().hex[:12]}",
        borrower=borrower,
        amount=application.loan_amount,
        interest_rate=settings.application_loan_interest_rate,
        issued_at=now,
        due_date=add_months(now, settings.loan_term_months),
        status=LoanStatus.ACTIVE.value,
        notes=application.loan_purpose,
        payments=[],
    )
    session.add(loan)
    await session.flush()

    application.loan_id = loan.id
    await session.flush()

    await audit.record(
        session,
        "LOAN_APPLICATION_FINAL_APPROVED",
        {
            "application_id": application.id,
            "loan_id": loan.id,
            "borrower_id": borrower.id,
            "borrower_created": created,
        },
        action.final_approved_by,
    )
    result.borrower = borrower
    result.loan = loan
    result.events.append(
        NotificationEvent(
            notifications.APPROVED,
            application.email,
            {"name": application.full_name, "loan_amount": application.loan_amount},
        )
    )
