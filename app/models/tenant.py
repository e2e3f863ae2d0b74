"""Tenant-related models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Text, Integer
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class Tenant(Base):
    """Restaurant tenant"""
    __tablename__ = "tenants"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    timezone = Column(String(50), default="Africa/Lagos")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    settings = relationship("RestaurantSettings", back_populates="tenant", uselist=False)
    operating_state = relationship("OperatingState", back_populates="tenant", uselist=False)
    staff_contacts = relationship("StaffContact", back_populates="tenant")
    orders = relationship("Order", back_populates="tenant")
    users = relationship("User", back_populates="tenant")


class RestaurantSettings(Base):
    """Restaurant-specific settings"""
    __tablename__ = "restaurant_settings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), unique=True, nullable=False)

    # Business information
    address = Column(Text)
    city = Column(String(100))
    phone = Column(String(20))

    # Operating hours (JSON: {"monday": {"open": "09:00", "close": "21:00", "closed": false}, ...})
    hours_json = Column(JSON, default=dict)

    # Default kitchen prep time shown to customers
    prep_time_minutes = Column(Integer, default=30)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="settings")


class OperatingState(Base):
    """Kitchen open/closed state, one row per tenant"""
    __tablename__ = "operating_states"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), unique=True, nullable=False)
    is_open = Column(Boolean, nullable=False, default=False)
    auto_close_enabled = Column(Boolean, nullable=False, default=False)
    max_active_orders = Column(Integer, nullable=False, default=10)

    # Whether the opening-hours window was open at the last hours sync; None before the first
    hours_open = Column(Boolean)

    # Bumped on every write; writers compare-and-swap on it
    version = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="operating_state")


class StaffContact(Base):
    """Staff contacts for admin alerts"""
    __tablename__ = "staff_contacts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    role = Column(String(50))  # manager, kitchen, dispatcher
    notify_on_order = Column(Boolean, default=True)
    notify_on_capacity = Column(Boolean, default=True)
    notify_on_payment_failure = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="staff_contacts")
