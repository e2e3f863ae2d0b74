"""Pydantic schemas for request/response validation"""

from app.schemas.auth import (
    Token,
    UserResponse,
)
from app.schemas.settings import (
    DayHours,
    WeeklySchedule,
)
from app.schemas.order import (
    OrderItemCreate,
    OrderCreate,
    OrderStatusUpdate,
    OrderResponse,
    OrderListResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.schemas.promo import (
    PromoValidateRequest,
    PromoValidateResponse,
)
from app.schemas.kitchen import (
    CapacityResponse,
    CapacityEvaluationResponse,
    KitchenStatusUpdate,
    RestaurantStatusResponse,
)
from app.schemas.delivery import (
    AutoAssignRequest,
    AutoAssignResponse,
    CompleteDeliveryRequest,
    CompleteDeliveryResponse,
)

__all__ = [
    "Token",
    "UserResponse",
    "DayHours",
    "WeeklySchedule",
    "OrderItemCreate",
    "OrderCreate",
    "OrderStatusUpdate",
    "OrderResponse",
    "OrderListResponse",
    "VerifyPaymentRequest",
    "VerifyPaymentResponse",
    "PromoValidateRequest",
    "PromoValidateResponse",
    "CapacityResponse",
    "CapacityEvaluationResponse",
    "KitchenStatusUpdate",
    "RestaurantStatusResponse",
    "AutoAssignRequest",
    "AutoAssignResponse",
    "CompleteDeliveryRequest",
    "CompleteDeliveryResponse",
]
