"""Courier dispatch API endpoints"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.user import User, UserRole
from app.schemas.delivery import (
    AssignedCourier,
    AssignmentScoring,
    AutoAssignRequest,
    AutoAssignResponse,
    CandidateSummary,
    CompleteDeliveryRequest,
    CompleteDeliveryResponse,
)
from app.api.auth import get_current_active_user, verify_tenant_access
from app.services.courier_assignment import CourierAssignmentService

router = APIRouter()


@router.post("/auto-assign", response_model=AutoAssignResponse)
async def auto_assign(
    tenant_id: UUID,
    request: AutoAssignRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Pick the best available courier for an order and assign it"""
    await verify_tenant_access(tenant_id, current_user, UserRole.RESTAURANT_ADMIN)

    result = await CourierAssignmentService(db, tenant_id).assign(
        request.order_id, actor_id=current_user.id
    )

    return AutoAssignResponse(
        assignment_id=result.assignment_id,
        driver=AssignedCourier(
            id=result.courier.courier_id,
            name=result.courier.name,
            phone=result.courier.phone,
            score=result.score,
            cod_balance=result.courier.cod_balance,
        ),
        scoring=AssignmentScoring(
            is_cod_order=result.is_cod_order,
            candidates_evaluated=result.candidates_evaluated,
            top_candidates=[
                CandidateSummary(
                    courier_id=candidate.courier_id,
                    name=candidate.name,
                    score=candidate.score,
                    active_deliveries=candidate.active_deliveries,
                )
                for candidate in result.top_candidates
            ],
        ),
    )


@router.post("/assignments/{assignment_id}/complete", response_model=CompleteDeliveryResponse)
async def complete_delivery(
    tenant_id: UUID,
    assignment_id: UUID,
    request: CompleteDeliveryRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a delivery done and return the courier to the pool"""
    await verify_tenant_access(tenant_id, current_user, UserRole.RESTAURANT_ADMIN)

    result = await CourierAssignmentService(db, tenant_id).complete_assignment(
        assignment_id,
        request.courier_id,
        cod_amount=request.cod_amount,
        actor_id=current_user.id,
    )

    return CompleteDeliveryResponse(
        assignment_id=result.assignment_id,
        order_id=result.order_id,
        courier_id=result.courier_id,
        courier_status=result.courier_status,
        cod_collected=result.cod_collected,
        courier_cod_balance=result.courier_cod_balance,
    )
