from schemas.accounting import LoanCalculation, PortfolioStats, RiskAssessment, ScheduleEntry
from schemas.application import (
    ApplicationAction,
    ApplicationActionRequest,
    ConditionalApprove,
    Disburse,
    FinalApprove,
    LoanApplicationCreate,
    Reject,
    SignDocuments,
    StartReview,
)
from schemas.borrower import BorrowerCreate, BorrowerUpdate
from schemas.loan import LoanCreate, LoanUpdate
from schemas.payment import PaymentCreate, PaymentUpdate

__all__ = [
    "ApplicationAction",
    "ApplicationActionRequest",
    "BorrowerCreate",
    "BorrowerUpdate",
    "ConditionalApprove",
    "Disburse",
    "FinalApprove",
    "LoanApplicationCreate",
    "LoanCalculation",
    "LoanCreate",
    "LoanUpdate",
    "PaymentCreate",
    "PaymentUpdate",
    "PortfolioStats",
    "Reject",
    "RiskAssessment",
    "ScheduleEntry",
    "SignDocuments",
    "StartReview",
]
