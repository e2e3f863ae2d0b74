"""Order intake and kitchen status API endpoints"""

from typing import Optional
from uuid import UUID
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.order import Order
from app.models.user import User
from app.schemas.order import OrderCreate, OrderStatusUpdate, OrderResponse, OrderListResponse
from app.api.auth import get_current_active_user, verify_tenant_access
from app.services import orders as order_service

router = APIRouter()


@router.get("", response_model=OrderListResponse)
async def list_orders(
    tenant_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """List orders for a tenant with pagination"""
    await verify_tenant_access(tenant_id, current_user)

    query = select(Order).where(Order.tenant_id == tenant_id)
    count_query = select(func.count(Order.id)).where(Order.tenant_id == tenant_id)

    # Apply filters
    if status:
        query = query.where(Order.status == status)
        count_query = count_query.where(Order.status == status)

    if from_date:
        query = query.where(Order.created_at >= from_date)
        count_query = count_query.where(Order.created_at >= from_date)

    if to_date:
        query = query.where(Order.created_at <= to_date)
        count_query = count_query.where(Order.created_at <= to_date)

    # Get total
    total_result = await db.execute(count_query)
    total = total_result.scalar()

    # Get paginated results
    offset = (page - 1) * page_size
    query = query.order_by(Order.created_at.desc()).offset(offset).limit(page_size)

    result = await db.execute(query)
    orders = result.scalars().all()

    return OrderListResponse(
        items=[OrderResponse.from_order(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    tenant_id: UUID,
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
):
    """Place an order from the storefront.

    Orders placed outside operating hours are accepted as ``scheduled``.
    """
    order = await order_service.create_order(db, tenant_id, order_data)
    return OrderResponse.from_order(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    tenant_id: UUID,
    order_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Get order details"""
    await verify_tenant_access(tenant_id, current_user)

    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.tenant_id == tenant_id)
    )
    order = result.scalar_one_or_none()

    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    return OrderResponse.from_order(order)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    tenant_id: UUID,
    order_id: UUID,
    status_data: OrderStatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Move an order through the kitchen workflow"""
    await verify_tenant_access(tenant_id, current_user)

    order = await order_service.update_order_status(db, tenant_id, order_id, status_data.status)
    return OrderResponse.from_order(order)
