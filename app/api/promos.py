"""Promo code API endpoints"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.promo import PromoValidateRequest, PromoValidateResponse
from app.services.promos import validate_promo

router = APIRouter()


@router.post("/validate", response_model=PromoValidateResponse)
async def validate_promo_code(
    tenant_id: UUID,
    request: PromoValidateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Check a promo code at checkout and preview the discount"""
    result = await validate_promo(db, tenant_id, request.code, request.order_total)
    return PromoValidateResponse(
        valid=result.valid,
        message=result.message,
        discount_amount=result.discount_amount,
        discount_type=result.discount_type,
        promo_code=result.promo_code,
        min_order_value=result.min_order_value,
    )
