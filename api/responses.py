"""camelCase response builders shared by the routers."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from models import AuditLog, Borrower, Loan, LoanApplication, Payment
from services.accounting import calculate_loan_details
from utils.dates import as_utc, isoformat
from utils.money import money_to_json


def borrower_summary(b: Borrower | None) -> dict[str, Any] | None:
    if b is None:
        return None
    return {"id": b.id, "name": b.name, "email": b.email, "phone": b.phone}


def borrower_to_response(b: Borrower, loans: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    out = {
        "id": b.id,
        "name": b.name,
        "email": b.email,
        "phone": b.phone,
        "address": b.address,
        "notes": b.notes,
        "createdAt": isoformat(b.created_at),
        "updatedAt": isoformat(b.updated_at),
    }
    if loans is not None:
        out["loans"] = loans
    return out


def payment_to_response(p: Payment, loan: dict[str, Any] | None = None) -> dict[str, Any]:
    out = {
        "id": p.id,
        "loanId": p.loan_id,
        "amount": money_to_json(p.amount),
        "paidAt": isoformat(p.paid_at),
        "notes": p.notes,
        "method": p.method,
        "createdAt": isoformat(p.created_at),
    }
    if loan is not None:
        out["loan"] = loan
    return out


def loan_to_response(
    loan: Loan,
    *,
    now: datetime | None = None,
    include_borrower: bool = True,
    include_payments: bool = True,
) -> dict[str, Any]:
    """Loan with its derived figures; expects payments (and borrower, if included) loaded."""
    calc = calculate_loan_details(loan, now)
    out = {
        "id": loan.id,
        "borrowerId": loan.borrower_id,
        "amount": money_to_json(loan.amount),
        "interestRate": float(loan.interest_rate or 0),
        "issuedAt": isoformat(loan.issued_at),
        "dueDate": isoformat(loan.due_date),
        "status": loan.status,
        "notes": loan.notes,
        "createdAt": isoformat(loan.created_at),
        "updatedAt": isoformat(loan.updated_at),
        "interestAmount": money_to_json(calc.interest_amount),
        "totalOwed": money_to_json(calc.total_owed),
        "totalPaid": money_to_json(calc.total_paid),
        "balance": money_to_json(calc.balance),
        "isOverdue": calc.is_overdue,
        "isFullyPaid": calc.is_fully_paid,
        "paymentProgress": round(float(calc.payment_progress), 2),
    }
    if include_borrower:
        out["borrower"] = borrower_summary(loan.borrower)
    if include_payments:
        # Newest first
        payments = sorted(loan.payments, key=lambda p: as_utc(p.paid_at), reverse=True)
        out["payments"] = [payment_to_response(p) for p in payments]
    return out


def application_to_response(a: LoanApplication) -> dict[str, Any]:
    return {
        "id": a.id,
        "status": a.status,
        "fullName": a.full_name,
        "email": a.email,
        "phone": a.phone,
        "address": a.address,
        "employmentStatus": a.employment_status,
        "monthlyIncome": money_to_json(a.monthly_income),
        "loanAmount": money_to_json(a.loan_amount),
        "loanPurpose": a.loan_purpose,
        "documents": a.documents or [],
        "reviewedBy": a.reviewed_by,
        "reviewedAt": isoformat(a.reviewed_at),
        "reviewNotes": a.review_notes,
        "conditionalApprovalNotes": a.conditional_approval_notes,
        "requiredDocuments": a.required_documents or [],
        "signedDocuments": a.signed_documents or [],
        "documentsSignedAt": isoformat(a.documents_signed_at),
        "finalApprovedBy": a.final_approved_by,
        "finalApprovedAt": isoformat(a.final_approved_at),
        "loanId": a.loan_id,
        "disbursedBy": a.disbursed_by,
        "disbursedAt": isoformat(a.disbursed_at),
        "disbursementAmount": money_to_json(a.disbursement_amount),
        "disbursementMethod": a.disbursement_method,
        "disbursementReference": a.disbursement_reference,
        "createdAt": isoformat(a.created_at),
        "updatedAt": isoformat(a.updated_at),
    }


def audit_to_response(entry: AuditLog) -> dict[str, Any]:
    return {
        "id": entry.id,
        "action": entry.action,
        "actorId": entry.actor_id,
        "payload": entry.payload or {},
        "createdAt": isoformat(entry.created_at),
    }
