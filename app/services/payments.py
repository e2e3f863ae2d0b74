"""Payment confirmation.

The webhook and the client-side verify call both end up in
:func:`confirm_payment`. It records the payment on the order and then runs
the attribution ledger and the side-effect dispatcher, each of which is
idempotent on its own. A duplicate event therefore re-enters both and finds
nothing left to do, which also lets a retry finish work that an earlier
delivery crashed part-way through.
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

import httpx
import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.jobs.dispatch import enqueue
from app.models.order import Order, OrderStatus, PaymentStatus
from app.services.attribution import AttributionLedger
from app.services.errors import DownstreamUnavailable, NotFoundError, ValidationError
from app.services.side_effects import SideEffectDispatcher

logger = structlog.get_logger()

CONFIRMABLE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.SCHEDULED.value)


@dataclass
class PaymentVerification:
    status: str
    amount: Decimal
    reference: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


@dataclass
class ConfirmationResult:
    order: Order
    already_processed: bool


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> bool:
    """Check a Paystack webhook signature (hex HMAC-SHA512 of the raw body)"""
    secret = secret if secret is not None else settings.paystack_secret_key
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


class PaystackClient:
    """Transaction verification against the Paystack API"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.secret_key = secret_key or settings.paystack_secret_key
        self.base_url = base_url or settings.paystack_base_url
        self.timeout = timeout or settings.paystack_timeout_seconds

    async def verify(self, reference: str) -> PaymentVerification:
        if not self.secret_key:
            raise DownstreamUnavailable("Payment service not configured")

        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                response = await client.get(
                    f"/transaction/verify/{reference}",
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                )
        except httpx.HTTPError as e:
            logger.error("Paystack request failed", reference=reference, error=str(e))
            raise DownstreamUnavailable("Failed to verify payment") from e

        if response.status_code >= 500:
            logger.error("Paystack unavailable", reference=reference, status_code=response.status_code)
            raise DownstreamUnavailable("Failed to verify payment")

        body = response.json()
        if response.status_code != 200 or not body.get("status"):
            raise ValidationError(body.get("message") or "Payment verification failed")

        data = body.get("data") or {}
        return PaymentVerification(
            status=data.get("status", ""),
            # Paystack amounts are in kobo
            amount=Decimal(data.get("amount", 0)) / 100,
            reference=data.get("reference", reference),
            metadata=data.get("metadata") or {},
            raw=data,
        )


async def _get_order(db: AsyncSession, order_id: UUID) -> Order:
    order = await db.get(Order, order_id, populate_existing=True)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def run_confirmation_effects(db: AsyncSession, order: Order) -> None:
    """Ledger then side effects; neither raises"""
    order_id = order.id
    await AttributionLedger(db).process_confirmed_payment(order)
    order = await db.get(Order, order_id, populate_existing=True)
    await SideEffectDispatcher(db).on_confirmed(order)


async def confirm_payment(
    db: AsyncSession,
    order_id: UUID,
    reference: str,
    payment_data: Optional[Dict[str, Any]] = None,
) -> ConfirmationResult:
    """Handle a PaymentConfirmed event for an order"""
    order = await _get_order(db, order_id)

    if order.status == OrderStatus.CANCELLED.value:
        logger.warning("Payment confirmed for cancelled order", order_id=str(order_id), reference=reference)

    already_processed = order.payment_status == PaymentStatus.SUCCESS.value
    if not already_processed:
        values = {
            "payment_status": PaymentStatus.SUCCESS.value,
            "payment_reference": reference,
            "payment_data": payment_data,
        }
        unpaid = [Order.id == order_id, Order.payment_status != PaymentStatus.SUCCESS.value]

        entering_kitchen = order.status in CONFIRMABLE_STATUSES
        if entering_kitchen:
            result = await db.execute(
                update(Order)
                .where(*unpaid, Order.status.in_(CONFIRMABLE_STATUSES))
                .values(status=OrderStatus.CONFIRMED.value, confirmed_at=datetime.utcnow(), **values)
                .execution_options(synchronize_session=False)
            )
            # Cancelled (or otherwise moved on) since it was read
            entering_kitchen = result.rowcount == 1

        if not entering_kitchen:
            result = await db.execute(
                update(Order)
                .where(*unpaid)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        await db.commit()
        already_processed = result.rowcount != 1

        if not already_processed:
            logger.info("Payment confirmed", order_id=str(order_id), reference=reference)
            if entering_kitchen:
                enqueue("evaluate_kitchen_capacity", order.tenant_id)

    if already_processed:
        logger.info("Duplicate payment confirmation", order_id=str(order_id), reference=reference)

    order = await db.get(Order, order_id, populate_existing=True)
    if order.confirmed_at is not None:
        await run_confirmation_effects(db, order)
        order = await db.get(Order, order_id, populate_existing=True)

    return ConfirmationResult(order=order, already_processed=already_processed)


async def mark_payment_failed(
    db: AsyncSession,
    order_id: UUID,
    reference: str,
    payment_data: Optional[Dict[str, Any]] = None,
) -> bool:
    """Record a failed charge; a confirmed payment is never downgraded"""
    await _get_order(db, order_id)

    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.payment_status == PaymentStatus.PENDING.value)
        .values(
            payment_status=PaymentStatus.FAILED.value,
            payment_reference=reference,
            payment_data=payment_data,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount != 1:
        logger.info("Payment failure ignored", order_id=str(order_id), reference=reference)
        return False

    logger.info("Payment failed", order_id=str(order_id), reference=reference)
    enqueue("send_payment_failed_notice", order_id)
    return True
