"""Kitchen capacity API endpoints"""

from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.user import User, UserRole
from app.schemas.kitchen import CapacityResponse, CapacityEvaluationResponse, KitchenStatusUpdate
from app.api.auth import get_current_active_user, verify_tenant_access
from app.services.capacity import CapacityGate

router = APIRouter()


@router.get("/capacity", response_model=CapacityResponse)
async def get_capacity(
    tenant_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Current active order count against the kitchen limit"""
    await verify_tenant_access(tenant_id, current_user)

    status = await CapacityGate(db, tenant_id).status()
    return CapacityResponse(**asdict(status))


@router.post("/capacity/evaluate", response_model=CapacityEvaluationResponse)
async def evaluate_capacity(
    tenant_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Run the capacity gate now instead of waiting for the next order change"""
    await verify_tenant_access(tenant_id, current_user)

    evaluation = await CapacityGate(db, tenant_id).evaluate()
    return CapacityEvaluationResponse(**asdict(evaluation))


@router.put("/status", response_model=CapacityResponse)
async def update_kitchen_status(
    tenant_id: UUID,
    status_data: KitchenStatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Open or close the kitchen by hand, or change the auto-close limits"""
    await verify_tenant_access(tenant_id, current_user, UserRole.RESTAURANT_ADMIN)

    gate = CapacityGate(db, tenant_id)
    await gate.set_state(
        is_open=status_data.is_open,
        auto_close_enabled=status_data.auto_close_enabled,
        max_active_orders=status_data.max_active_orders,
        actor_id=current_user.id,
    )
    status = await gate.status()
    return CapacityResponse(**asdict(status))
