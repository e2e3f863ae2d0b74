"""Promo code schemas"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class PromoValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    order_total: Decimal = Field(gt=0)


class PromoValidateResponse(BaseModel):
    valid: bool
    message: str
    discount_amount: Decimal = Decimal("0")
    discount_type: Optional[str] = None
    promo_code: Optional[str] = None
    min_order_value: Optional[Decimal] = None
