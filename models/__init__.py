from models.application import ApplicationStatus, LoanApplication
from models.audit import AuditLog
from models.borrower import Borrower
from models.loan import Loan, LoanStatus, Payment

__all__ = [
    "ApplicationStatus",
    "AuditLog",
    "Borrower",
    "Loan",
    "LoanApplication",
    "LoanStatus",
    "Payment",
]
