"""Customer attribution and commission ledger models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class CustomerAttribution(Base):
    """First-touch binding of a customer phone to a referrer.

    The referrer is written once, when the binding is created, and never
    updated afterwards. Running totals are updated on every confirmed order.
    """
    __tablename__ = "customer_attributions"
    __table_args__ = (
        UniqueConstraint("tenant_id", "customer_phone", name="uq_customer_attributions_phone"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    referrer_id = Column(UUID(as_uuid=True), ForeignKey("referrers.id"), nullable=False)

    # First touch
    first_promo_code = Column(String(50))
    first_order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"))
    first_order_total = Column(Numeric(12, 2))
    first_order_at = Column(DateTime, default=datetime.utcnow)

    # Running totals
    total_orders = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CommissionRecord(Base):
    """One row per confirmed order; insert-only.

    The unique order_id doubles as the ledger's idempotency marker.
    """
    __tablename__ = "commission_records"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), unique=True, nullable=False)
    referrer_id = Column(UUID(as_uuid=True), ForeignKey("referrers.id"))
    promo_code = Column(String(50))
    customer_phone = Column(String(20), nullable=False)

    order_total = Column(Numeric(12, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False, default=0)
    is_first_order = Column(Boolean, nullable=False, default=False)
    is_new_customer = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
