"""Order intake and kitchen status transitions"""

import random
from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.jobs.dispatch import enqueue
from app.models.order import (
    ACTIVE_ORDER_STATUSES,
    ORDER_TRANSITIONS,
    TERMINAL_ORDER_STATUSES,
    Order,
    OrderStatus,
)
from app.models.tenant import OperatingState, Tenant
from app.schemas.order import OrderCreate
from app.services.errors import NotFoundError, ValidationError
from app.services.hours import load_schedule, next_opening_utc, should_be_open_now
from app.services.payments import run_confirmation_effects
from app.services.promos import validate_promo

logger = structlog.get_logger()


def generate_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"ORD-{now:%Y%m%d}-{random.randint(0, 9999):04d}"


def check_totals(data: OrderCreate) -> None:
    """total must equal subtotal - discount + delivery_fee + tax, give or take rounding"""
    expected = data.subtotal - data.discount + data.delivery_fee + data.tax
    if abs(expected - data.total) > settings.order_total_tolerance:
        raise ValidationError(f"Order total {data.total} does not match computed total {expected}")


async def create_order(
    db: AsyncSession,
    tenant_id: UUID,
    data: OrderCreate,
    now: Optional[datetime] = None,
) -> Order:
    tenant = await db.get(Tenant, tenant_id)
    if tenant is None or not tenant.is_active:
        raise NotFoundError("Restaurant not found")

    check_totals(data)

    promo_code = None
    if data.promo_code:
        promo = await validate_promo(db, tenant_id, data.promo_code, data.subtotal, now=now)
        if not promo.valid:
            raise ValidationError(promo.message)
        if data.discount > promo.discount_amount + settings.order_total_tolerance:
            raise ValidationError("Discount exceeds what the promo code allows")
        promo_code = promo.promo_code
    elif data.discount > 0:
        raise ValidationError("Discount requires a promo code")

    schedule = await load_schedule(db, tenant_id)
    tz_name = tenant.timezone or settings.restaurant_timezone
    hours = should_be_open_now(schedule, tz_name, now)

    if hours.should_be_open:
        result = await db.execute(
            select(OperatingState.is_open).where(OperatingState.tenant_id == tenant_id)
        )
        if result.scalar_one_or_none() is False:
            raise ValidationError("Restaurant is not accepting orders right now")
        status = OrderStatus.PENDING.value
        scheduled_for = None
    else:
        status = OrderStatus.SCHEDULED.value
        scheduled_for = next_opening_utc(schedule, tz_name, now)

    order = Order(
        tenant_id=tenant_id,
        order_number=generate_order_number(now),
        customer_name=data.customer_name,
        customer_phone=data.customer_phone,
        customer_email=data.customer_email,
        order_type=data.order_type,
        delivery_address=data.delivery_address,
        delivery_instructions=data.delivery_instructions,
        items_json=[item.model_dump(mode="json") for item in data.items],
        subtotal=data.subtotal,
        delivery_fee=data.delivery_fee,
        tax=data.tax,
        discount=data.discount,
        total=data.total,
        promo_code=promo_code,
        payment_method=data.payment_method,
        status=status,
        scheduled_for=scheduled_for,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)

    logger.info(
        "Order created",
        order_id=str(order.id),
        tenant_id=str(tenant_id),
        status=status,
        hours_reason=hours.reason,
        total=str(order.total),
    )
    return order


async def update_order_status(
    db: AsyncSession,
    tenant_id: UUID,
    order_id: UUID,
    new_status: str,
) -> Order:
    order = await db.get(Order, order_id, populate_existing=True)
    if order is None or order.tenant_id != tenant_id:
        raise NotFoundError("Order not found")

    current = order.status
    if new_status == OrderStatus.CANCELLED.value:
        if current in TERMINAL_ORDER_STATUSES:
            raise ValidationError(f"Cannot cancel a {current} order")
    elif new_status not in ORDER_TRANSITIONS.get(current, set()):
        raise ValidationError(f"Cannot move order from {current} to {new_status}")

    if new_status == OrderStatus.CONFIRMED.value and not order.is_cod:
        raise ValidationError("Online orders are confirmed by their payment")

    order.status = new_status
    if new_status == OrderStatus.CONFIRMED.value:
        order.confirmed_at = datetime.utcnow()
    await db.commit()

    logger.info("Order status updated", order_id=str(order_id), from_status=current, to_status=new_status)

    if (current in ACTIVE_ORDER_STATUSES) != (new_status in ACTIVE_ORDER_STATUSES):
        enqueue("evaluate_kitchen_capacity", tenant_id)

    if new_status == OrderStatus.CONFIRMED.value:
        await run_confirmation_effects(db, order)

    return await db.get(Order, order_id, populate_existing=True)
