"""
Derives every money figure for a loan from its principal, flat rate and payments.
Interest is simple and one-time: principal * rate / 100 rounded to the cent, never compounded.
All functions are pure; `now` is injectable so results are reproducible in tests.
Inputs are trusted: negative amounts and rates are rejected at the write boundary.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable

from models.loan import LoanStatus
from schemas.accounting import LoanCalculation, PortfolioStats, RiskAssessment, ScheduleEntry
from utils.dates import add_months, as_utc, utcnow
from utils.money import ZERO, round_money, safe_percentage, to_decimal

LARGE_LOAN_THRESHOLD = Decimal("10000")
RECENT_PAYMENT_WINDOW_DAYS = 90


def interest_amount(principal, interest_rate) -> Decimal:
    """Flat interest rounded to the cent, so the total owed is always payable in cents."""
    return round_money(to_decimal(principal) * (to_decimal(interest_rate) / 100))


def total_owed(principal, interest_rate) -> Decimal:
    return round_money(principal) + interest_amount(principal, interest_rate)


def total_paid(payments: Iterable[Any]) -> Decimal:
    return sum((to_decimal(p.amount) for p in payments), ZERO)


def status_for_total_paid(paid, owed) -> LoanStatus:
    """Derived status: PAID once payments cover the total owed, else ACTIVE."""
    return LoanStatus.PAID if to_decimal(paid) >= to_decimal(owed) else LoanStatus.ACTIVE


def reconciled_status(loan: Any) -> LoanStatus:
    """
    Status a loan should carry given its payments. Only ACTIVE/PAID are derived:
    a DEFAULTED loan stays DEFAULTED until its payments cover the total owed.
    """
    derived = status_for_total_paid(total_paid(loan.payments), total_owed(loan.amount, loan.interest_rate))
    if derived == LoanStatus.ACTIVE and loan.status == LoanStatus.DEFAULTED:
        return LoanStatus.DEFAULTED
    return derived


def calculate_loan_details(loan: Any, now: datetime | None = None) -> LoanCalculation:
    now = as_utc(now) or utcnow()
    principal = to_decimal(loan.amount)
    rate = to_decimal(loan.interest_rate)
    interest = interest_amount(principal, rate)
    owed = total_owed(principal, rate)
    paid = total_paid(loan.payments)
    balance = owed - paid

    is_overdue = now > as_utc(loan.due_date) and loan.status == LoanStatus.ACTIVE and balance > 0
    is_fully_paid = balance <= 0 or loan.status == LoanStatus.PAID

    return LoanCalculation(
        principal=principal,
        interest_rate=rate,
        interest_amount=interest,
        total_owed=owed,
        total_paid=paid,
        balance=balance,
        is_overdue=is_overdue,
        is_fully_paid=is_fully_paid,
        payment_progress=safe_percentage(paid, owed),
    )


def calculate_portfolio_stats(loans: Iterable[Any], now: datetime | None = None) -> PortfolioStats:
    stats = PortfolioStats()
    for loan in loans:
        calc = calculate_loan_details(loan, now)
        stats.total_loans += 1
        stats.total_principal += calc.principal
        stats.total_disbursed += calc.principal
        stats.total_repaid += calc.total_paid
        stats.total_outstanding += calc.balance

        if loan.status == LoanStatus.ACTIVE:
            stats.active_loans += 1
            if calc.is_overdue:
                stats.overdue_loans += 1
                stats.total_overdue += calc.balance
        elif loan.status == LoanStatus.PAID:
            stats.paid_loans += 1
        elif loan.status == LoanStatus.DEFAULTED:
            stats.defaulted_loans += 1

    if stats.total_loans:
        stats.average_loan_size = stats.total_principal / stats.total_loans
    stats.portfolio_at_risk = safe_percentage(stats.total_overdue, stats.total_outstanding)
    stats.default_rate = safe_percentage(stats.defaulted_loans, stats.total_loans)
    stats.repayment_rate = safe_percentage(stats.total_repaid, stats.total_disbursed)
    return stats


def days_until_due(due_date: datetime, now: datetime | None = None) -> int:
    """Whole days until due (rounded up); negative once past due."""
    now = as_utc(now) or utcnow()
    return math.ceil((as_utc(due_date) - now).total_seconds() / 86400)


def loan_age_days(issued_at: datetime, now: datetime | None = None) -> int:
    now = as_utc(now) or utcnow()
    return math.floor((now - as_utc(issued_at)).total_seconds() / 86400)


def monthly_payment(principal, annual_rate, term_months: int) -> Decimal:
    """Level amortized instalment; straight division when the rate is zero."""
    principal = to_decimal(principal)
    if term_months <= 0:
        raise ValueError("term_months must be positive")
    annual_rate = to_decimal(annual_rate)
    if annual_rate == 0:
        return principal / term_months
    r = annual_rate / 100 / 12
    growth = (1 + r) ** term_months
    return principal * r * growth / (growth - 1)


def payment_schedule(principal, annual_rate, term_months: int, start_date: datetime) -> list[ScheduleEntry]:
    instalment = monthly_payment(principal, annual_rate, term_months)
    r = to_decimal(annual_rate) / 100 / 12
    remaining = to_decimal(principal)
    schedule: list[ScheduleEntry] = []
    for n in range(1, term_months + 1):
        interest = remaining * r
        principal_part = instalment - interest
        remaining -= principal_part
        schedule.append(
            ScheduleEntry(
                payment_number=n,
                due_date=add_months(start_date, n),
                payment_amount=instalment,
                principal_amount=principal_part,
                interest_amount=interest,
                remaining_balance=max(ZERO, remaining),
            )
        )
    return schedule


def assess_loan_risk(loan: Any, now: datetime | None = None) -> RiskAssessment:
    """Rule-based score from loan age, lateness, repayment progress, size and payment recency."""
    now = as_utc(now) or utcnow()
    calc = calculate_loan_details(loan, now)
    factors: list[str] = []
    score = 0

    age = loan_age_days(loan.issued_at, now)
    if age > 365:
        factors.append("Loan is over 1 year old")
        score += 20

    if calc.is_overdue:
        days_overdue = abs(days_until_due(loan.due_date, now))
        factors.append(f"{days_overdue} days overdue")
        score += min(days_overdue * 2, 40)

    if calc.payment_progress < 25 and age > 90:
        factors.append("Low payment progress for loan age")
        score += 15

    if to_decimal(loan.amount) > LARGE_LOAN_THRESHOLD:
        factors.append("High loan amount")
        score += 10

    window_start = now - timedelta(days=RECENT_PAYMENT_WINDOW_DAYS)
    recent = [p for p in loan.payments if as_utc(p.paid_at) > window_start]
    if loan.payments and not recent and not calc.is_fully_paid:
        factors.append(f"No payments in last {RECENT_PAYMENT_WINDOW_DAYS} days")
        score += 25

    if score <= 20:
        level = "LOW"
    elif score <= 50:
        level = "MEDIUM"
    else:
        level = "HIGH"
    return RiskAssessment(risk_level=level, risk_factors=factors, risk_score=min(score, 100))


def overdue_risk_bucket(days_overdue: int) -> str:
    if days_overdue <= 30:
        return "lowRisk"
    if days_overdue <= 90:
        return "mediumRisk"
    return "highRisk"
