"""Kitchen print queue model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text, Integer
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class PrintJob(Base):
    """Kitchen receipt waiting to be printed, one per order"""
    __tablename__ = "print_jobs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), unique=True, nullable=False)

    # Receipt snapshot taken at confirmation time
    payload = Column(JSON, nullable=False)

    status = Column(String(20), nullable=False, default="pending")  # pending, printed, failed
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    processed_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
