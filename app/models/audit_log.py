from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)
    event_type = Column(String(50), nullable=False)
    event_description = Column(Text, nullable=False)
    ip_address = Column(String(45))
    user_agent = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
