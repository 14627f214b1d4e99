import enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Numeric, String, Text, func

from database import Base
from utils.dates import utcnow


class ApplicationStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    CONDITIONALLY_APPROVED = "CONDITIONALLY_APPROVED"
    DOCUMENTS_SIGNED = "DOCUMENTS_SIGNED"
    APPROVED = "APPROVED"
    DISBURSED = "DISBURSED"
    REJECTED = "REJECTED"


class LoanApplication(Base):
    __tablename__ = "loan_applications"

    id = Column(String(64), primary_key=True, index=True)
    status = Column(String(32), nullable=False, default=ApplicationStatus.SUBMITTED.value, index=True)

    # Applicant
    full_name = Column(String(256), nullable=False)
    email = Column(String(320), nullable=False, index=True)
    phone = Column(String(64), nullable=False)
    address = Column(Text, nullable=False)
    employment_status = Column(String(128), nullable=False)
    monthly_income = Column(Numeric(14, 2), nullable=False)

    # Request
    loan_amount = Column(Numeric(14, 2), nullable=False)
    loan_purpose = Column(Text, nullable=False)
    documents = Column(JSON, nullable=True)

    # Review
    reviewed_by = Column(String(128), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_notes = Column(Text, nullable=True)
    conditional_approval_notes = Column(Text, nullable=True)
    required_documents = Column(JSON, nullable=True)

    # Signing and approval
    signed_documents = Column(JSON, nullable=True)
    documents_signed_at = Column(DateTime(timezone=True), nullable=True)
    final_approved_by = Column(String(128), nullable=True)
    final_approved_at = Column(DateTime(timezone=True), nullable=True)
    loan_id = Column(String(64), ForeignKey("loans.id", ondelete="SET NULL"), nullable=True)

    # Disbursement
    disbursed_by = Column(String(128), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    disbursement_amount = Column(Numeric(14, 2), nullable=True)
    disbursement_method = Column(String(64), nullable=True)
    disbursement_reference = Column(String(256), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)
