from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from models.loan import LoanStatus


class LoanCreate(BaseModel):
    borrower_id: str = Field(..., alias="borrowerId", min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    interest_rate: Decimal = Field(Decimal("0"), alias="interestRate", ge=0)
    issued_at: Optional[datetime] = Field(None, alias="issuedAt")
    due_date: datetime = Field(..., alias="dueDate")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class LoanUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    interest_rate: Optional[Decimal] = Field(None, alias="interestRate", ge=0)
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    status: Optional[LoanStatus] = None
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}
