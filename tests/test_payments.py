"""Tests for payment confirmation, the Paystack webhook and verify-payment"""

import hashlib
import hmac
import json
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from app.api.payments import get_paystack_client
from app.config import settings
from app.main import app
from app.models.attribution import CommissionRecord
from app.models.order import Order
from app.models.print_job import PrintJob
from app.services import payments
from app.services.payments import (
    PaymentVerification,
    confirm_payment,
    mark_payment_failed,
    verify_signature,
)


def _sign(body: bytes) -> str:
    return hmac.new(settings.paystack_secret_key.encode(), body, hashlib.sha512).hexdigest()


def _event(event_type: str, order_id, reference: str = "ref_123") -> bytes:
    return json.dumps(
        {
            "event": event_type,
            "data": {
                "reference": reference,
                "status": "success" if event_type == "charge.success" else "failed",
                "amount": 400000,
                "metadata": {"order_id": str(order_id)},
            },
        }
    ).encode()


async def _count(test_db, model, order_id):
    result = await test_db.execute(select(func.count(model.id)).where(model.order_id == order_id))
    return result.scalar()


def _task_names(sent_tasks):
    return [name for name, _ in sent_tasks]


def test_verify_signature():
    body = b'{"event": "charge.success"}'
    signature = hmac.new(b"secret", body, hashlib.sha512).hexdigest()

    assert verify_signature(body, signature, secret="secret") is True
    assert verify_signature(body, signature, secret="other") is False
    assert verify_signature(body + b" ", signature, secret="secret") is False
    assert verify_signature(body, None, secret="secret") is False
    assert verify_signature(body, signature, secret="") is False


@pytest.mark.asyncio
async def test_confirm_payment_runs_fulfillment(test_db, test_tenant, make_order, sent_tasks):
    order = await make_order(total=Decimal("4000"))

    result = await confirm_payment(test_db, order.id, "ref_123", {"status": "success"})

    assert result.already_processed is False
    assert result.order.status == "confirmed"
    assert result.order.payment_status == "success"
    assert result.order.payment_reference == "ref_123"
    assert result.order.confirmed_at is not None

    assert await _count(test_db, PrintJob, order.id) == 1
    assert await _count(test_db, CommissionRecord, order.id) == 1

    names = _task_names(sent_tasks)
    assert names.count("evaluate_kitchen_capacity") == 1
    assert names.count("print_order") == 1
    assert names.count("send_order_confirmation") == 1
    assert names.count("send_new_order_alert") == 1


@pytest.mark.asyncio
async def test_duplicate_confirmation_is_idempotent(test_db, test_tenant, make_order, sent_tasks):
    order = await make_order(total=Decimal("4000"))

    await confirm_payment(test_db, order.id, "ref_123")
    result = await confirm_payment(test_db, order.id, "ref_123")

    assert result.already_processed is True
    assert await _count(test_db, PrintJob, order.id) == 1
    assert await _count(test_db, CommissionRecord, order.id) == 1

    names = _task_names(sent_tasks)
    assert names.count("print_order") == 1
    assert names.count("send_order_confirmation") == 1
    assert names.count("evaluate_kitchen_capacity") == 1


@pytest.mark.asyncio
async def test_duplicate_finishes_interrupted_work(test_db, test_tenant, make_order, sent_tasks, monkeypatch):
    """A delivery that died before the side effects is completed by the retry"""
    from app.services import payments

    order = await make_order(total=Decimal("4000"))
    real_effects = payments.run_confirmation_effects

    async def crash(db, order):
        raise RuntimeError("worker died")

    monkeypatch.setattr(payments, "run_confirmation_effects", crash)
    with pytest.raises(RuntimeError):
        await confirm_payment(test_db, order.id, "ref_123")
    monkeypatch.setattr(payments, "run_confirmation_effects", real_effects)

    assert await _count(test_db, PrintJob, order.id) == 0

    result = await confirm_payment(test_db, order.id, "ref_123")
    assert result.already_processed is True
    assert await _count(test_db, PrintJob, order.id) == 1
    assert await _count(test_db, CommissionRecord, order.id) == 1


@pytest.mark.asyncio
async def test_scheduled_order_is_confirmed(test_db, test_tenant, make_order):
    order = await make_order(status="scheduled")
    result = await confirm_payment(test_db, order.id, "ref_123")
    assert result.order.status == "confirmed"


@pytest.mark.asyncio
async def test_payment_on_cancelled_order_does_not_reach_kitchen(test_db, test_tenant, make_order, sent_tasks):
    order = await make_order(status="cancelled")
    result = await confirm_payment(test_db, order.id, "ref_123")

    assert result.order.status == "cancelled"
    assert result.order.payment_status == "success"
    assert await _count(test_db, PrintJob, order.id) == 0
    assert "evaluate_kitchen_capacity" not in _task_names(sent_tasks)


@pytest.mark.asyncio
async def test_order_cancelled_during_confirmation_stays_cancelled(
    test_db, test_tenant, make_order, sent_tasks, monkeypatch
):
    order = await make_order()
    get_order = payments._get_order

    async def read_then_cancel(db, order_id):
        stale = await get_order(db, order_id)
        await db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(status="cancelled")
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return stale

    monkeypatch.setattr(payments, "_get_order", read_then_cancel)
    result = await confirm_payment(test_db, order.id, "ref_123")

    assert result.already_processed is False
    assert result.order.status == "cancelled"
    assert result.order.confirmed_at is None
    assert result.order.payment_status == "success"
    assert await _count(test_db, PrintJob, order.id) == 0
    assert "evaluate_kitchen_capacity" not in _task_names(sent_tasks)


@pytest.mark.asyncio
async def test_mark_payment_failed(test_db, test_tenant, make_order, sent_tasks):
    order = await make_order()

    assert await mark_payment_failed(test_db, order.id, "ref_123") is True
    order = await test_db.get(Order, order.id, populate_existing=True)
    assert order.payment_status == "failed"
    assert order.status == "pending"
    assert ("send_payment_failed_notice", [str(order.id)]) in sent_tasks


@pytest.mark.asyncio
async def test_failure_never_downgrades_success(test_db, test_tenant, make_order):
    order = await make_order()
    await confirm_payment(test_db, order.id, "ref_123")

    assert await mark_payment_failed(test_db, order.id, "ref_456") is False
    order = await test_db.get(Order, order.id, populate_existing=True)
    assert order.payment_status == "success"
    assert order.payment_reference == "ref_123"


@pytest.mark.asyncio
async def test_webhook_rejects_missing_signature(client, test_tenant, make_order):
    order = await make_order()
    response = await client.post("/webhooks/paystack", content=_event("charge.success", order.id))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(client, test_db, test_tenant, make_order):
    order = await make_order()
    response = await client.post(
        "/webhooks/paystack",
        content=_event("charge.success", order.id),
        headers={"x-paystack-signature": "0" * 128},
    )
    assert response.status_code == 401

    order = await test_db.get(Order, order.id, populate_existing=True)
    assert order.payment_status == "pending"


@pytest.mark.asyncio
async def test_webhook_charge_success_delivered_twice(client, test_db, test_tenant, make_order):
    order = await make_order()
    body = _event("charge.success", order.id)
    headers = {"x-paystack-signature": _sign(body), "content-type": "application/json"}

    first = await client.post("/webhooks/paystack", content=body, headers=headers)
    second = await client.post("/webhooks/paystack", content=body, headers=headers)

    assert first.status_code == 200
    assert first.json() == {"received": True}
    assert second.status_code == 200
    assert second.json()["message"] == "Already processed"

    order = await test_db.get(Order, order.id, populate_existing=True)
    assert order.status == "confirmed"
    assert await _count(test_db, PrintJob, order.id) == 1
    assert await _count(test_db, CommissionRecord, order.id) == 1


@pytest.mark.asyncio
async def test_webhook_charge_failed(client, test_db, test_tenant, make_order):
    order = await make_order()
    body = _event("charge.failed", order.id)

    response = await client.post(
        "/webhooks/paystack", content=body, headers={"x-paystack-signature": _sign(body)}
    )
    assert response.status_code == 200

    order = await test_db.get(Order, order.id, populate_existing=True)
    assert order.payment_status == "failed"


@pytest.mark.asyncio
async def test_webhook_acknowledges_unprocessable_events(client, test_tenant):
    for body in (
        _event("transfer.success", uuid4()),
        _event("charge.success", uuid4()),
        json.dumps({"event": "charge.success", "data": {"reference": "ref"}}).encode(),
    ):
        response = await client.post(
            "/webhooks/paystack", content=body, headers={"x-paystack-signature": _sign(body)}
        )
        assert response.status_code == 200
        assert response.json()["received"] is True


class FakePaystack:
    def __init__(self, status: str):
        self.status = status
        self.references = []

    async def verify(self, reference: str) -> PaymentVerification:
        self.references.append(reference)
        return PaymentVerification(
            status=self.status,
            amount=Decimal("4000"),
            reference=reference,
            raw={"status": self.status, "reference": reference},
        )


@pytest.fixture
def fake_paystack():
    def _install(status: str) -> FakePaystack:
        fake = FakePaystack(status)
        app.dependency_overrides[get_paystack_client] = lambda: fake
        return fake

    yield _install
    app.dependency_overrides.pop(get_paystack_client, None)


@pytest.mark.asyncio
async def test_verify_payment_success(client, test_db, test_tenant, make_order, fake_paystack):
    paystack = fake_paystack("success")
    order = await make_order()

    response = await client.post(
        "/orders/verify-payment", json={"order_id": str(order.id), "reference": "ref_123"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["order"]["status"] == "confirmed"
    assert data["order"]["payment_status"] == "success"
    assert paystack.references == ["ref_123"]
    assert await _count(test_db, PrintJob, order.id) == 1


@pytest.mark.asyncio
async def test_verify_payment_not_successful(client, test_db, test_tenant, make_order, fake_paystack):
    fake_paystack("abandoned")
    order = await make_order()

    response = await client.post(
        "/orders/verify-payment", json={"order_id": str(order.id), "reference": "ref_123"}
    )

    assert response.status_code == 400
    assert response.json()["payment_status"] == "abandoned"

    order = await test_db.get(Order, order.id, populate_existing=True)
    assert order.payment_status == "failed"
    assert order.status == "pending"


@pytest.mark.asyncio
async def test_verify_payment_unknown_order(client, test_tenant, fake_paystack):
    paystack = fake_paystack("success")

    response = await client.post(
        "/orders/verify-payment", json={"order_id": str(uuid4()), "reference": "ref_123"}
    )

    assert response.status_code == 404
    assert paystack.references == []
