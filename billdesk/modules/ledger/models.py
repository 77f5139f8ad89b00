from billdesk.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func


class DocumentSequence(Base):
    """Counter rows used to number documents, one per document type and period"""
    __tablename__ = "document_sequences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_type = Column(String(30), nullable=False)
    # "" for counters that never reset, the year ("2026") for yearly counters
    period_key = Column(String(10), nullable=False, default="")
    current_value = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("document_type", "period_key", name="uq_sequence_type_period"),
    )
