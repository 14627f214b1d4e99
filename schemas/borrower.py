from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from schemas.application import NonEmptyStr


class BorrowerCreate(BaseModel):
    name: NonEmptyStr
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None


class BorrowerUpdate(BaseModel):
    """Partial update; only fields present in the body are applied."""
    name: Optional[NonEmptyStr] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=5000)
