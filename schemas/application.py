from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, RootModel, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class LoanApplicationCreate(BaseModel):
    full_name: NonEmptyStr = Field(..., alias="fullName")
    email: EmailStr
    phone: NonEmptyStr
    address: NonEmptyStr
    employment_status: NonEmptyStr = Field(..., alias="employmentStatus")
    monthly_income: Decimal = Field(..., alias="monthlyIncome", gt=0, decimal_places=2)
    loan_amount: Decimal = Field(..., alias="loanAmount", gt=0, decimal_places=2)
    loan_purpose: Annotated[str, StringConstraints(strip_whitespace=True, min_length=10)] = Field(
        ..., alias="loanPurpose", description="Please provide more details about loan purpose"
    )
    documents: Optional[list[str]] = None

    model_config = {"populate_by_name": True}


class _Action(BaseModel):
    model_config = {"populate_by_name": True}


class StartReview(_Action):
    action: Literal["start_review"]
    reviewed_by: NonEmptyStr = Field(..., alias="reviewedBy")
    review_notes: Optional[str] = Field(None, alias="reviewNotes")


class ConditionalApprove(_Action):
    action: Literal["conditional_approve"]
    reviewed_by: NonEmptyStr = Field(..., alias="reviewedBy")
    conditional_approval_notes: NonEmptyStr = Field(..., alias="conditionalApprovalNotes")
    required_documents: list[NonEmptyStr] = Field(..., alias="requiredDocuments", min_length=1)


class Reject(_Action):
    action: Literal["reject"]
    reviewed_by: NonEmptyStr = Field(..., alias="reviewedBy")
    # Rejection reason
    review_notes: NonEmptyStr = Field(..., alias="reviewNotes")


class SignDocuments(_Action):
    action: Literal["sign_documents"]
    signed_documents: list[NonEmptyStr] = Field(..., alias="signedDocuments", min_length=1)
    signed_by: Optional[str] = Field(None, alias="signedBy")


class FinalApprove(_Action):
    action: Literal["final_approve"]
    final_approved_by: NonEmptyStr = Field(..., alias="finalApprovedBy")


class Disburse(_Action):
    action: Literal["disburse"]
    disbursed_by: NonEmptyStr = Field(..., alias="disbursedBy")
    disbursement_amount: Decimal = Field(..., alias="disbursementAmount", gt=0, decimal_places=2)
    disbursement_method: NonEmptyStr = Field(..., alias="disbursementMethod")
    disbursement_reference: Optional[str] = Field(None, alias="disbursementReference")


ApplicationAction = Annotated[
    Union[StartReview, ConditionalApprove, Reject, SignDocuments, FinalApprove, Disburse],
    Field(discriminator="action"),
]


class ApplicationActionRequest(RootModel[ApplicationAction]):
    """PATCH body: one workflow event, selected by its `action` tag."""
