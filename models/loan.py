import enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from database import Base
from utils.dates import utcnow


class LoanStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    DEFAULTED = "DEFAULTED"


class Loan(Base):
    __tablename__ = "loans"

    id = Column(String(64), primary_key=True, index=True)
    borrower_id = Column(String(64), ForeignKey("borrowers.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    # Flat percentage applied once to the principal
    interest_rate = Column(Numeric(6, 3), nullable=False, default=0)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False, index=True)
    # Cached projection of payments vs. total owed; rewritten by every ledger mutation
    status = Column(String(16), nullable=False, default=LoanStatus.ACTIVE.value, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    borrower = relationship("Borrower", back_populates="loans")
    payments = relationship("Payment", back_populates="loan", order_by="Payment.paid_at", cascade="all, delete-orphan")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(64), primary_key=True, index=True)
    loan_id = Column(String(64), ForeignKey("loans.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    method = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    loan = relationship("Loan", back_populates="payments")
