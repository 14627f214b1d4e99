from sqlalchemy import JSON, Column, DateTime, String, func

from database import Base
from utils.dates import utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(64), primary_key=True, index=True)
    action = Column(String(64), nullable=False, index=True)
    actor_id = Column(String(128), nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)
