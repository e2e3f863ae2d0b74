"""Kitchen capacity and restaurant status schemas"""

from typing import Dict, Optional
from pydantic import BaseModel, Field

from app.schemas.settings import DayHours


class CapacityResponse(BaseModel):
    """Current kitchen load"""
    is_open: bool
    auto_close_enabled: bool
    active_orders: int
    max_orders: int
    capacity_percentage: int
    can_accept_orders: bool


class CapacityEvaluationResponse(BaseModel):
    """Outcome of a capacity gate run"""
    action: str
    active_orders: int
    threshold: int


class KitchenStatusUpdate(BaseModel):
    """Manual override from the kitchen dashboard"""
    is_open: Optional[bool] = None
    auto_close_enabled: Optional[bool] = None
    max_active_orders: Optional[int] = Field(default=None, ge=1, le=100)


class StatusChangeResponse(BaseModel):
    action: str
    minutes: int
    formatted_time: str


class RestaurantStatusResponse(BaseModel):
    """Public open/closed status for the storefront"""
    is_open: bool
    should_be_open: bool
    reason: str
    today_hours: Optional[DayHours]
    today_hours_formatted: str
    weekly_hours: Dict[str, str]
    next_change: Optional[StatusChangeResponse]
