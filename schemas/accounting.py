from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class LoanCalculation(BaseModel):
    principal: Decimal
    interest_rate: Decimal
    interest_amount: Decimal
    total_owed: Decimal
    total_paid: Decimal
    balance: Decimal
    is_overdue: bool
    is_fully_paid: bool
    payment_progress: Decimal


class PortfolioStats(BaseModel):
    total_loans: int = 0
    active_loans: int = 0
    paid_loans: int = 0
    overdue_loans: int = 0
    defaulted_loans: int = 0
    total_principal: Decimal = Decimal("0")
    total_disbursed: Decimal = Decimal("0")
    total_repaid: Decimal = Decimal("0")
    total_outstanding: Decimal = Decimal("0")
    total_overdue: Decimal = Decimal("0")
    average_loan_size: Decimal = Decimal("0")
    portfolio_at_risk: Decimal = Decimal("0")
    default_rate: Decimal = Decimal("0")
    repayment_rate: Decimal = Decimal("0")


class ScheduleEntry(BaseModel):
    payment_number: int
    due_date: datetime
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal


class RiskAssessment(BaseModel):
    risk_level: Literal["LOW", "MEDIUM", "HIGH"]
    risk_factors: list[str] = Field(default_factory=list)
    risk_score: int
