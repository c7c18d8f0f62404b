from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db import Base


class BillingEvent(Base):
    __tablename__ = "billing_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(128), nullable=False, unique=True, index=True)
    user_id = Column(Integer, nullable=True)
    event_type = Column(String(64), nullable=False)
    processing_status = Column(String(32), nullable=False, default="RECEIVED")
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
