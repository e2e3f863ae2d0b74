"""Tests for first-touch attribution and the commission ledger"""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.models.attribution import CommissionRecord, CustomerAttribution
from app.models.promo import PromoCode, Referrer
from app.services.attribution import AttributionLedger, compute_commission

PHONE = "+2348031234567"


@pytest.fixture
def confirmed_order(make_order):
    async def _confirmed_order(total, promo_code=None, phone=PHONE, **fields):
        return await make_order(
            total=Decimal(total),
            status="confirmed",
            phone=phone,
            promo_code=promo_code,
            confirmed_at=datetime.utcnow(),
            **fields,
        )

    return _confirmed_order


async def _binding(test_db, tenant_id, phone=PHONE):
    result = await test_db.execute(
        select(CustomerAttribution)
        .where(
            CustomerAttribution.tenant_id == tenant_id,
            CustomerAttribution.customer_phone == phone,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _record_count(test_db, order_id):
    result = await test_db.execute(
        select(func.count(CommissionRecord.id)).where(CommissionRecord.order_id == order_id)
    )
    return result.scalar()


def test_compute_commission():
    percentage = Referrer(commission_type="percentage", commission_value=Decimal("10"))
    assert compute_commission(percentage, Decimal("4000")) == Decimal("400.00")
    assert compute_commission(percentage, Decimal("1234.55")) == Decimal("123.46")

    fixed = Referrer(commission_type="fixed_amount", commission_value=Decimal("500"))
    assert compute_commission(fixed, Decimal("4000")) == Decimal("500.00")


@pytest.mark.asyncio
async def test_welcome_promo_binds_and_later_orders_inherit(
    test_db, test_tenant, test_referrer, welcome_promo, confirmed_order
):
    ledger = AttributionLedger(test_db)

    order_a = await confirmed_order("4000", promo_code="WELCOME10", payment_method="cod")
    outcome = await ledger.process_confirmed_payment(order_a)

    assert outcome.referrer_id == test_referrer.id
    assert outcome.commission_amount == Decimal("400.00")
    assert outcome.is_first_order is True
    assert outcome.is_new_customer is True

    binding = await _binding(test_db, test_tenant.id)
    assert binding.referrer_id == test_referrer.id
    assert binding.first_promo_code == "WELCOME10"
    assert binding.first_order_id == order_a.id
    assert binding.total_orders == 1
    assert binding.total_spent == Decimal("4000")

    promo = await test_db.get(PromoCode, welcome_promo.id, populate_existing=True)
    assert promo.used_count == 1

    # Same phone, no promo code: the bound referrer still earns
    order_b = await confirmed_order("2500")
    outcome = await ledger.process_confirmed_payment(order_b)

    assert outcome.referrer_id == test_referrer.id
    assert outcome.commission_amount == Decimal("250.00")
    assert outcome.is_first_order is False
    assert outcome.is_new_customer is False

    record = (
        await test_db.execute(select(CommissionRecord).where(CommissionRecord.order_id == order_b.id))
    ).scalar_one()
    assert record.referrer_id == test_referrer.id
    assert record.promo_code is None
    assert record.commission_amount == Decimal("250.00")

    binding = await _binding(test_db, test_tenant.id)
    assert binding.total_orders == 2
    assert binding.total_spent == Decimal("6500")


@pytest.mark.asyncio
async def test_binding_never_changes(test_db, test_tenant, test_referrer, welcome_promo, confirmed_order):
    rival = Referrer(
        tenant_id=test_tenant.id,
        name="Rival",
        commission_type="fixed_amount",
        commission_value=Decimal("1000"),
    )
    test_db.add(rival)
    await test_db.flush()
    rival_promo = PromoCode(
        tenant_id=test_tenant.id,
        code="RIVAL20",
        discount_type="percentage",
        discount_value=Decimal("20"),
        referrer_id=rival.id,
    )
    test_db.add(rival_promo)
    await test_db.commit()

    ledger = AttributionLedger(test_db)
    await ledger.process_confirmed_payment(await confirmed_order("4000", promo_code="WELCOME10"))
    outcome = await ledger.process_confirmed_payment(await confirmed_order("3000", promo_code="rival20"))

    assert outcome.referrer_id == test_referrer.id
    assert outcome.commission_amount == Decimal("300.00")
    assert outcome.is_new_customer is False

    binding = await _binding(test_db, test_tenant.id)
    assert binding.referrer_id == test_referrer.id
    assert binding.first_promo_code == "WELCOME10"

    # The promo still counts as used
    promo = await test_db.get(PromoCode, rival_promo.id, populate_existing=True)
    assert promo.used_count == 1


@pytest.mark.asyncio
async def test_duplicate_confirmation_writes_once(test_db, test_tenant, welcome_promo, confirmed_order):
    ledger = AttributionLedger(test_db)
    order = await confirmed_order("4000", promo_code="WELCOME10")

    assert await ledger.process_confirmed_payment(order) is not None
    assert await ledger.process_confirmed_payment(order) is None

    assert await _record_count(test_db, order.id) == 1
    promo = await test_db.get(PromoCode, welcome_promo.id, populate_existing=True)
    assert promo.used_count == 1
    binding = await _binding(test_db, test_tenant.id)
    assert binding.total_orders == 1


@pytest.mark.asyncio
async def test_order_without_referrer_records_zero_commission(test_db, test_tenant, confirmed_order):
    order = await confirmed_order("1500")
    outcome = await AttributionLedger(test_db).process_confirmed_payment(order)

    assert outcome.referrer_id is None
    assert outcome.commission_amount == Decimal("0.00")
    assert outcome.is_first_order is True
    assert await _record_count(test_db, order.id) == 1
    assert await _binding(test_db, test_tenant.id) is None


@pytest.mark.asyncio
async def test_promo_without_referrer_does_not_bind(test_db, test_tenant, confirmed_order):
    test_db.add(
        PromoCode(
            tenant_id=test_tenant.id,
            code="FLAT500",
            discount_type="fixed_amount",
            discount_value=Decimal("500"),
        )
    )
    await test_db.commit()

    outcome = await AttributionLedger(test_db).process_confirmed_payment(
        await confirmed_order("3000", promo_code="FLAT500")
    )
    assert outcome.referrer_id is None
    assert await _binding(test_db, test_tenant.id) is None


@pytest.mark.asyncio
async def test_inactive_referrer_earns_nothing(test_db, test_tenant, test_referrer, welcome_promo, confirmed_order):
    test_referrer.is_active = False
    await test_db.commit()

    outcome = await AttributionLedger(test_db).process_confirmed_payment(
        await confirmed_order("4000", promo_code="WELCOME10")
    )
    assert outcome.referrer_id is None
    assert outcome.commission_amount == Decimal("0.00")

    # The customer is still bound for when the referrer is reactivated
    binding = await _binding(test_db, test_tenant.id)
    assert binding.referrer_id == test_referrer.id


@pytest.mark.asyncio
async def test_unconfirmed_orders_do_not_count_as_history(test_db, test_tenant, make_order, confirmed_order):
    await make_order(total=Decimal("2000"), status="pending", phone=PHONE)
    outcome = await AttributionLedger(test_db).process_confirmed_payment(await confirmed_order("2000"))
    assert outcome.is_first_order is True


@pytest.mark.asyncio
async def test_local_and_international_spellings_share_a_binding(
    test_db, test_tenant, test_referrer, welcome_promo, confirmed_order
):
    rival = Referrer(
        tenant_id=test_tenant.id,
        name="Rival",
        commission_type="percentage",
        commission_value=Decimal("20"),
    )
    test_db.add(rival)
    await test_db.flush()
    test_db.add(
        PromoCode(
            tenant_id=test_tenant.id,
            code="RIVAL20",
            discount_type="percentage",
            discount_value=Decimal("20"),
            referrer_id=rival.id,
        )
    )
    await test_db.commit()

    ledger = AttributionLedger(test_db)
    await ledger.process_confirmed_payment(await confirmed_order("4000", promo_code="WELCOME10"))
    outcome = await ledger.process_confirmed_payment(
        await confirmed_order("3000", promo_code="RIVAL20", phone="08031234567")
    )

    assert outcome.referrer_id == test_referrer.id
    assert outcome.is_first_order is False
    assert outcome.is_new_customer is False

    bindings = (await test_db.execute(select(CustomerAttribution))).scalars().all()
    assert [b.customer_phone for b in bindings] == [PHONE]
