"""Courier and delivery assignment models"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Float, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class CourierStatus(str, enum.Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


class AssignmentStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Assignments in these states count toward a courier's workload
OPEN_ASSIGNMENT_STATUSES = (
    AssignmentStatus.PENDING.value,
    AssignmentStatus.ACCEPTED.value,
    AssignmentStatus.PICKED_UP.value,
)


class Courier(Base):
    """Delivery drivers"""
    __tablename__ = "couriers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)

    status = Column(String(20), nullable=False, default=CourierStatus.OFFLINE.value)
    is_active = Column(Boolean, default=True)  # On shift

    # Vehicle held for the current shift
    vehicle_id = Column(String(100))

    # Last reported location; may be stale or missing
    current_latitude = Column(Float)
    current_longitude = Column(Float)
    location_updated_at = Column(DateTime)

    # Cash collected on delivery and not yet settled
    cod_balance = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assignments = relationship("DeliveryAssignment", back_populates="courier")


class DeliveryAssignment(Base):
    """Order handed to a courier"""
    __tablename__ = "delivery_assignments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False)
    courier_id = Column(UUID(as_uuid=True), ForeignKey("couriers.id"), nullable=False)
    status = Column(String(20), nullable=False, default=AssignmentStatus.PENDING.value)
    score = Column(Float)
    assigned_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)

    # Cash the courier collected at the door
    cod_collected = Column(Numeric(12, 2))

    # Relationships
    courier = relationship("Courier", back_populates="assignments")
