"""Order model"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class OrderStatus(str, enum.Enum):
    """Order lifecycle states"""
    PENDING = "pending"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    ONLINE = "online"
    COD = "cod"


# Orders in these states count toward kitchen capacity
ACTIVE_ORDER_STATUSES = (
    OrderStatus.CONFIRMED.value,
    OrderStatus.PREPARING.value,
    OrderStatus.READY.value,
)

# Allowed forward transitions; cancelled is reachable from any non-terminal state
ORDER_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.CONFIRMED.value},
    OrderStatus.SCHEDULED.value: {OrderStatus.CONFIRMED.value},
    OrderStatus.CONFIRMED.value: {OrderStatus.PREPARING.value},
    OrderStatus.PREPARING.value: {OrderStatus.READY.value},
    OrderStatus.READY.value: {OrderStatus.OUT_FOR_DELIVERY.value, OrderStatus.COMPLETED.value},
    OrderStatus.OUT_FOR_DELIVERY.value: {OrderStatus.COMPLETED.value},
    OrderStatus.COMPLETED.value: set(),
    OrderStatus.CANCELLED.value: set(),
}

TERMINAL_ORDER_STATUSES = (OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value)


class Order(Base):
    """Customer orders"""
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    order_number = Column(String(32), nullable=False)

    # Customer information (phone is the natural key for attribution)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(20), nullable=False, index=True)
    customer_email = Column(String(255))

    # Fulfilment
    order_type = Column(String(20), default="delivery")  # delivery, carryout
    delivery_address = Column(Text)
    delivery_instructions = Column(Text)

    # [{"item_id": "...", "item_name": "...", "quantity": 1, "unit_price": "1500.00", "subtotal": "1500.00"}, ...]
    items_json = Column(JSON, nullable=False, default=list)

    # Pricing
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    promo_code = Column(String(50))

    # Status
    status = Column(String(30), nullable=False, default=OrderStatus.PENDING.value, index=True)
    scheduled_for = Column(DateTime)

    # Payment
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.ONLINE.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_reference = Column(String(100))
    payment_data = Column(JSON)
    confirmed_at = Column(DateTime)

    # Delivery
    assigned_courier_id = Column(UUID(as_uuid=True), ForeignKey("couriers.id"))

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="orders")
    assigned_courier = relationship("Courier")

    @property
    def is_cod(self) -> bool:
        return self.payment_method == PaymentMethod.COD.value
