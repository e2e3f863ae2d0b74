"""Public restaurant status endpoint"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.tenant import Tenant
from app.schemas.kitchen import RestaurantStatusResponse, StatusChangeResponse
from app.services.capacity import CapacityGate
from app.services.hours import (
    format_day_hours,
    format_weekly_hours,
    load_schedule,
    should_be_open_now,
    time_until_status_change,
)

router = APIRouter()


@router.get("/status", response_model=RestaurantStatusResponse)
async def get_restaurant_status(
    tenant_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Whether the storefront should show the restaurant as open"""
    tenant = await db.get(Tenant, tenant_id)
    if not tenant or not tenant.is_active:
        raise HTTPException(status_code=404, detail="Restaurant not found")

    # Check operating hours
    tz_name = tenant.timezone or settings.restaurant_timezone
    schedule = await load_schedule(db, tenant_id)
    hours = should_be_open_now(schedule, tz_name)
    change = time_until_status_change(schedule, tz_name)
    state = await CapacityGate(db, tenant_id).get_state()

    # Open only when staff have it open and we are within hours

    return RestaurantStatusResponse(
        is_open=state.is_open and hours.should_be_open,
        should_be_open=hours.should_be_open,
        reason=hours.reason,
        today_hours=hours.today_hours,
        today_hours_formatted=format_day_hours(hours.today_hours),
        weekly_hours=format_weekly_hours(schedule),
        next_change=StatusChangeResponse(
            action=change.action,
            minutes=change.minutes,
            formatted_time=change.formatted_time,
        ) if change else None,
    )
