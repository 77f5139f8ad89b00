"""
Common mixins for billing models
"""
from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.sql import func


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class AuditMixin(TimestampMixin):
    """Adds the acting user id supplied by the identity provider"""

    created_by = Column(Integer, nullable=False, index=True)
