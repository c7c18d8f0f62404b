from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from app.db import Base


class ToolHistory(Base):
    __tablename__ = "tool_history"
    __table_args__ = (
        Index("ix_tool_history_user_id_created_at", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    tool_type = Column(String(32), nullable=False)
    action = Column(String(16), nullable=False, default="generate")
    # PDF | Notion, only set for exports
    format = Column(String(16), nullable=True)

    input = Column(Text, nullable=False)
    output = Column(Text, nullable=False, default="")
    generation_time = Column(Integer, nullable=True)
    metadata_json = Column("metadata", Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
