"""WhatsApp notifications via Twilio"""

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client as TwilioClient

from app.config import settings
from app.models.tenant import StaffContact
from app.services.phone import normalize_phone

logger = structlog.get_logger()

TEMPLATES = {
    "order_confirmed": (
        "Hi {customer_name}, your order {order_number} is confirmed. "
        "Total: {total}. We'll let you know when it's on the way."
    ),
    "payment_failed": (
        "Hi {customer_name}, payment for order {order_number} did not go through. "
        "Please try again."
    ),
    "new_order": "New order {order_number} from {customer_name} ({customer_phone}). Total: {total}.",
    "kitchen_closed": "Kitchen auto-closed: {active_orders}/{threshold} active orders.",
    "kitchen_reopened": "Kitchen reopened: {active_orders}/{threshold} active orders.",
    "payment_failure_alert": "Payment failed for order {order_number} ({customer_phone}).",
    "courier_assigned": (
        "Hi {courier_name}, you have been assigned order {order_number} for {customer_name} "
        "({customer_phone}). Deliver to: {delivery_address}. Total: {total}."
    ),
}

# Which StaffContact flag opts an admin into each alert
ADMIN_EVENT_FLAGS = {
    "new_order": "notify_on_order",
    "kitchen_closed": "notify_on_capacity",
    "kitchen_reopened": "notify_on_capacity",
    "payment_failure_alert": "notify_on_payment_failure",
}


def render(event: str, context: Dict[str, Any]) -> str:
    return TEMPLATES[event].format(**context)


def _whatsapp(number: str) -> str:
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


class NotificationSender:
    """Send a templated WhatsApp message; never raises"""

    def __init__(self, client: Optional[TwilioClient] = None):
        self._client = client

    @property
    def client(self) -> TwilioClient:
        if self._client is None:
            self._client = TwilioClient(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                http_client=TwilioHttpClient(timeout=settings.notification_timeout_seconds),
            )
        return self._client

    def send(self, phone: str, event: str, context: Dict[str, Any]) -> bool:
        try:
            body = render(event, context)
        except (KeyError, IndexError) as e:
            logger.error("Notification template error", notification_event=event, error=str(e))
            return False

        try:
            message = self.client.messages.create(
                body=body,
                from_=_whatsapp(settings.twilio_whatsapp_number),
                to=_whatsapp(normalize_phone(phone)),
            )
        except Exception as e:
            logger.error("Failed to send notification", notification_event=event, phone=phone, error=str(e))
            return False

        logger.info("Notification sent", notification_event=event, phone=phone, message_sid=message.sid)
        return True


async def admin_recipients(db: AsyncSession, tenant_id: UUID, event: str) -> List[str]:
    """Phones of active staff opted into ``event``"""
    flag = getattr(StaffContact, ADMIN_EVENT_FLAGS[event])
    result = await db.execute(
        select(StaffContact.phone).where(
            StaffContact.tenant_id == tenant_id,
            StaffContact.is_active == True,
            flag == True,
        )
    )
    return list(result.scalars().all())


async def send_admin_alert(
    db: AsyncSession,
    sender: NotificationSender,
    tenant_id: UUID,
    event: str,
    context: Dict[str, Any],
) -> int:
    """Send an alert to every opted-in admin; returns the number delivered"""
    delivered = 0
    for phone in await admin_recipients(db, tenant_id, event):
        if sender.send(phone, event, context):
            delivered += 1
    return delivered
