from sqlalchemy import Column, DateTime, String, Text, func
from sqlalchemy.orm import relationship

from database import Base
from utils.dates import utcnow


class Borrower(Base):
    __tablename__ = "borrowers"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(256), nullable=False)
    # Unique so find-or-create by email cannot insert a duplicate row
    email = Column(String(320), unique=True, nullable=True, index=True)
    phone = Column(String(64), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    loans = relationship("Loan", back_populates="borrower", order_by="Loan.created_at.desc()")
