"""Promo code validation"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.promo import PromoCode


@dataclass
class PromoValidation:
    valid: bool
    message: str
    discount_amount: Decimal = Decimal("0")
    discount_type: Optional[str] = None
    promo_code: Optional[str] = None
    min_order_value: Optional[Decimal] = None


def _display(value) -> str:
    value = Decimal(str(value))
    return str(int(value)) if value == value.to_integral_value() else str(value)


def calculate_discount(promo: PromoCode, order_total: Decimal) -> Decimal:
    value = Decimal(str(promo.discount_value))
    if promo.discount_type == "percentage":
        discount = (order_total * value / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        if promo.max_discount_amount is not None:
            discount = min(discount, Decimal(str(promo.max_discount_amount)))
        return discount
    return min(value, order_total)


async def find_promo(db: AsyncSession, tenant_id: UUID, code: str) -> Optional[PromoCode]:
    result = await db.execute(
        select(PromoCode).where(
            PromoCode.tenant_id == tenant_id,
            func.upper(PromoCode.code) == code.strip().upper(),
        )
    )
    return result.scalar_one_or_none()


async def validate_promo(
    db: AsyncSession,
    tenant_id: UUID,
    code: str,
    order_total: Decimal,
    now: Optional[datetime] = None,
) -> PromoValidation:
    now = now or datetime.utcnow()
    promo = await find_promo(db, tenant_id, code)

    if promo is None or not promo.is_active:
        return PromoValidation(False, "Invalid promo code")

    if promo.expires_at is not None and promo.expires_at < now:
        return PromoValidation(False, "This promo code has expired")

    if promo.max_uses and promo.used_count >= promo.max_uses:
        return PromoValidation(False, "This promo code has reached its usage limit")

    if promo.min_order_value and order_total < promo.min_order_value:
        return PromoValidation(
            False,
            f"Minimum order value of {_display(promo.min_order_value)} required",
            min_order_value=Decimal(str(promo.min_order_value)),
        )

    discount = calculate_discount(promo, order_total)
    if promo.discount_type == "percentage":
        message = f"{_display(promo.discount_value)}% discount applied"
    else:
        message = f"{_display(promo.discount_value)} discount applied"

    return PromoValidation(
        True,
        message,
        discount_amount=discount,
        discount_type=promo.discount_type,
        promo_code=promo.code,
    )
