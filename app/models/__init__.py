"""Database models"""

from app.models.tenant import Tenant, RestaurantSettings, OperatingState, StaffContact
from app.models.order import Order
from app.models.promo import Referrer, PromoCode
from app.models.attribution import CustomerAttribution, CommissionRecord
from app.models.courier import Courier, DeliveryAssignment
from app.models.print_job import PrintJob
from app.models.audit import AuditLog
from app.models.user import User

__all__ = [
    "Tenant",
    "RestaurantSettings",
    "OperatingState",
    "StaffContact",
    "Order",
    "Referrer",
    "PromoCode",
    "CustomerAttribution",
    "CommissionRecord",
    "Courier",
    "DeliveryAssignment",
    "PrintJob",
    "AuditLog",
    "User",
]
