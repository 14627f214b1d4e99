from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class PaymentCreate(BaseModel):
    loan_id: str = Field(..., alias="loanId", min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    paid_at: Optional[datetime] = Field(None, alias="paidAt")
    notes: Optional[str] = None
    method: Optional[str] = None

    model_config = {"populate_by_name": True}


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    paid_at: Optional[datetime] = Field(None, alias="paidAt")
    notes: Optional[str] = None
    method: Optional[str] = None

    model_config = {"populate_by_name": True}
