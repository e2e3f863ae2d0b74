"""Promo code and referrer models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class Referrer(Base):
    """Influencers and partners who earn commission on referred customers"""
    __tablename__ = "referrers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(20))
    is_active = Column(Boolean, default=True)

    # percentage: commission_value is a rate out of 100; fixed_amount: flat value per order
    commission_type = Column(String(20), nullable=False, default="percentage")
    commission_value = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    promo_codes = relationship("PromoCode", back_populates="referrer")


class PromoCode(Base):
    """Discount codes, optionally owned by a referrer"""
    __tablename__ = "promo_codes"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_promo_codes_tenant_code"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    code = Column(String(50), nullable=False)  # Stored upper-case

    # Discount rule
    discount_type = Column(String(20), nullable=False, default="percentage")  # percentage, fixed_amount
    discount_value = Column(Numeric(12, 2), nullable=False)
    max_discount_amount = Column(Numeric(12, 2))
    min_order_value = Column(Numeric(12, 2))

    # Usage
    used_count = Column(Integer, nullable=False, default=0)
    max_uses = Column(Integer)
    expires_at = Column(DateTime)
    is_active = Column(Boolean, default=True)

    referrer_id = Column(UUID(as_uuid=True), ForeignKey("referrers.id"))

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    referrer = relationship("Referrer", back_populates="promo_codes")
