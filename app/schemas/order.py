"""Order schemas"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from app.services.phone import normalize_phone


class OrderItemCreate(BaseModel):
    """Create order item"""
    item_id: UUID
    item_name: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(gt=0)
    subtotal: Decimal = Field(gt=0)
    special_instructions: Optional[str] = Field(default=None, max_length=200)


class OrderCreate(BaseModel):
    """Create order request"""
    customer_name: str = Field(min_length=2)
    customer_phone: str = Field(pattern=r"^(\+234|0)[789]\d{9}$")
    customer_email: Optional[str] = None
    order_type: Literal["delivery", "carryout"] = "delivery"
    delivery_address: Optional[str] = None
    delivery_instructions: Optional[str] = Field(default=None, max_length=200)
    payment_method: Literal["online", "cod"] = "online"
    items: List[OrderItemCreate] = Field(min_length=1)
    subtotal: Decimal = Field(gt=0)
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(gt=0)
    promo_code: Optional[str] = None

    @field_validator("customer_phone")
    @classmethod
    def normalize_customer_phone(cls, v: str) -> str:
        return normalize_phone(v)


class OrderStatusUpdate(BaseModel):
    """Kitchen / dispatcher status change"""
    status: Literal[
        "confirmed",
        "preparing",
        "ready",
        "out_for_delivery",
        "completed",
        "cancelled",
    ]


class OrderResponse(BaseModel):
    """Order response"""
    id: UUID
    tenant_id: UUID
    order_number: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str]
    order_type: str
    delivery_address: Optional[str]
    items: List[dict]
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    promo_code: Optional[str]
    status: str
    scheduled_for: Optional[datetime]
    payment_method: str
    payment_status: str
    payment_reference: Optional[str]
    assigned_courier_id: Optional[UUID]
    confirmed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=order.id,
            tenant_id=order.tenant_id,
            order_number=order.order_number,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            customer_email=order.customer_email,
            order_type=order.order_type,
            delivery_address=order.delivery_address,
            items=order.items_json or [],
            subtotal=order.subtotal,
            delivery_fee=order.delivery_fee,
            tax=order.tax,
            discount=order.discount,
            total=order.total,
            promo_code=order.promo_code,
            status=order.status,
            scheduled_for=order.scheduled_for,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            payment_reference=order.payment_reference,
            assigned_courier_id=order.assigned_courier_id,
            confirmed_at=order.confirmed_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    """Paginated order list"""
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int


class VerifyPaymentRequest(BaseModel):
    """Client-initiated payment verification"""
    order_id: UUID
    reference: str = Field(min_length=1)


class VerifyPaymentResponse(BaseModel):
    success: bool
    order: OrderResponse
    message: str
