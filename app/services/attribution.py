"""Attribution and commission ledger.

Runs once per confirmed order. The first promo code with an owning referrer
binds the customer's phone number to that referrer for good; every later
order from the same phone earns that referrer commission, whatever promo
code (if any) the order carries.

Idempotency comes from the unique ``commission_records.order_id``: the
ledger writes for an order commit together with its commission record, and
a uniqueness violation on commit means another delivery of the same event
already did the work.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.attribution import CommissionRecord, CustomerAttribution
from app.models.order import Order
from app.models.promo import PromoCode, Referrer
from app.services.errors import AlreadyProcessed
from app.services.phone import normalize_phone

logger = structlog.get_logger()

CENT = Decimal("0.01")

# A concurrent first-touch insert for the same phone is retried once as a reuse
MAX_ATTEMPTS = 2


@dataclass
class OrderSnapshot:
    """Plain copy of the order fields the ledger needs"""
    order_id: UUID
    tenant_id: UUID
    customer_phone: str
    promo_code: Optional[str]
    total: Decimal

    @classmethod
    def of(cls, order: Order) -> "OrderSnapshot":
        return cls(
            order_id=order.id,
            tenant_id=order.tenant_id,
            customer_phone=normalize_phone(order.customer_phone),
            promo_code=order.promo_code,
            total=Decimal(str(order.total)),
        )


@dataclass
class LedgerOutcome:
    referrer_id: Optional[UUID]
    commission_amount: Decimal
    is_first_order: bool
    is_new_customer: bool


def compute_commission(referrer: Referrer, order_total: Decimal) -> Decimal:
    value = Decimal(str(referrer.commission_value))
    if referrer.commission_type == "percentage":
        return (order_total * value / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    if referrer.commission_type == "fixed_amount":
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    logger.warning("Unknown commission type", referrer_id=str(referrer.id), commission_type=referrer.commission_type)
    return Decimal("0.00")


class AttributionLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def process_confirmed_payment(self, order: Order) -> Optional[LedgerOutcome]:
        """Record attribution and commission for a confirmed order.

        Never raises: ledger problems are logged and must not block payment
        confirmation. Returns None when nothing was written.
        """
        snapshot = OrderSnapshot.of(order)
        try:
            return await self.record(snapshot)
        except AlreadyProcessed:
            logger.info("Commission already recorded", order_id=str(snapshot.order_id))
        except Exception:
            await self.db.rollback()
            logger.exception("Attribution ledger failed", order_id=str(snapshot.order_id))
        return None

    async def record(self, snapshot: OrderSnapshot) -> LedgerOutcome:
        for attempt in range(1, MAX_ATTEMPTS + 1):
            if await self._has_record(snapshot.order_id):
                raise AlreadyProcessed(f"Order {snapshot.order_id} already in the ledger")

            try:
                outcome = await self._apply(snapshot)
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                if attempt == MAX_ATTEMPTS:
                    raise
                logger.info(
                    "Ledger write conflicted, retrying",
                    order_id=str(snapshot.order_id),
                    attempt=attempt,
                )
                continue

            logger.info(
                "Commission recorded",
                order_id=str(snapshot.order_id),
                referrer_id=str(outcome.referrer_id) if outcome.referrer_id else None,
                commission=str(outcome.commission_amount),
                is_first_order=outcome.is_first_order,
                is_new_customer=outcome.is_new_customer,
            )
            return outcome

    async def _has_record(self, order_id: UUID) -> bool:
        result = await self.db.execute(
            select(CommissionRecord.id).where(CommissionRecord.order_id == order_id)
        )
        return result.scalar_one_or_none() is not None

    async def _apply(self, snapshot: OrderSnapshot) -> LedgerOutcome:
        """Stage every ledger write for one order; the caller commits"""
        prior_orders = await self.db.execute(
            select(func.count(Order.id)).where(
                Order.tenant_id == snapshot.tenant_id,
                Order.customer_phone == snapshot.customer_phone,
                Order.confirmed_at.is_not(None),
                Order.id != snapshot.order_id,
            )
        )
        is_first_order = (prior_orders.scalar() or 0) == 0

        binding = await self._get_binding(snapshot)
        created_binding = False

        if snapshot.promo_code:
            promo = await self._get_promo(snapshot)
            if promo is not None:
                await self.db.execute(
                    update(PromoCode)
                    .where(PromoCode.id == promo.id)
                    .values(used_count=PromoCode.used_count + 1)
                    .execution_options(synchronize_session=False)
                )
                if promo.referrer_id is not None and binding is None:
                    binding = CustomerAttribution(
                        tenant_id=snapshot.tenant_id,
                        customer_phone=snapshot.customer_phone,
                        referrer_id=promo.referrer_id,
                        first_promo_code=promo.code,
                        first_order_id=snapshot.order_id,
                        first_order_total=snapshot.total,
                        total_orders=1,
                        total_spent=snapshot.total,
                    )
                    self.db.add(binding)
                    created_binding = True
            else:
                logger.warning(
                    "Promo code on order not found",
                    order_id=str(snapshot.order_id),
                    promo_code=snapshot.promo_code,
                )

        if binding is not None and not created_binding:
            await self.db.execute(
                update(CustomerAttribution)
                .where(CustomerAttribution.id == binding.id)
                .values(
                    total_orders=CustomerAttribution.total_orders + 1,
                    total_spent=CustomerAttribution.total_spent + snapshot.total,
                )
                .execution_options(synchronize_session=False)
            )

        referrer_id = None
        commission = Decimal("0.00")
        if binding is not None:
            referrer = await self.db.get(Referrer, binding.referrer_id)
            if referrer is not None and referrer.is_active:
                referrer_id = referrer.id
                commission = compute_commission(referrer, snapshot.total)

        self.db.add(
            CommissionRecord(
                tenant_id=snapshot.tenant_id,
                order_id=snapshot.order_id,
                referrer_id=referrer_id,
                promo_code=snapshot.promo_code,
                customer_phone=snapshot.customer_phone,
                order_total=snapshot.total,
                commission_amount=commission,
                is_first_order=is_first_order,
                is_new_customer=created_binding,
            )
        )
        return LedgerOutcome(referrer_id, commission, is_first_order, created_binding)

    async def _get_binding(self, snapshot: OrderSnapshot) -> Optional[CustomerAttribution]:
        result = await self.db.execute(
            select(CustomerAttribution).where(
                CustomerAttribution.tenant_id == snapshot.tenant_id,
                CustomerAttribution.customer_phone == snapshot.customer_phone,
            )
        )
        return result.scalar_one_or_none()

    async def _get_promo(self, snapshot: OrderSnapshot) -> Optional[PromoCode]:
        result = await self.db.execute(
            select(PromoCode).where(
                PromoCode.tenant_id == snapshot.tenant_id,
                func.upper(PromoCode.code) == snapshot.promo_code.strip().upper(),
            )
        )
        return result.scalar_one_or_none()
