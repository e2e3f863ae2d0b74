"""Audit log model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class AuditLog(Base):
    """Audit trail for kitchen state flips and delivery assignments"""
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"))

    # Actor information
    actor_id = Column(UUID(as_uuid=True))  # User ID or null for system
    actor_type = Column(String(50))  # user, system, webhook

    # Action details
    action = Column(String(100), nullable=False)  # kitchen_closed, courier_assigned, etc.
    resource_type = Column(String(50))  # operating_state, order, courier
    resource_id = Column(UUID(as_uuid=True))

    data_json = Column(JSON)

    created_at = Column(DateTime, default=datetime.utcnow)
