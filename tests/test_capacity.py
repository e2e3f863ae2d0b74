"""Tests for the kitchen capacity gate"""

from datetime import datetime

import pytest
from sqlalchemy import select, update

from app.models.audit import AuditLog
from app.models.tenant import OperatingState
from app.jobs.tasks import sync_tenant_hours
from app.services.capacity import CapacityGate, reopen_threshold
from app.services.hours import HoursCheck


async def _set_active(test_db, orders, count):
    """Leave exactly ``count`` of ``orders`` in an active status"""
    for i, order in enumerate(orders):
        order.status = "preparing" if i < count else "completed"
    await test_db.commit()


def _alerts(sent_tasks):
    return [args for name, args in sent_tasks if name == "send_kitchen_capacity_alert"]


def test_reopen_threshold():
    assert reopen_threshold(10) == 8
    assert reopen_threshold(3) == 1
    assert reopen_threshold(2) == 1
    assert reopen_threshold(1) == 1


@pytest.mark.asyncio
async def test_closes_at_threshold_with_single_alert(test_db, test_tenant, make_order, sent_tasks):
    """Ninth order is fine, tenth closes the kitchen exactly once"""
    for _ in range(9):
        await make_order(status="confirmed")

    gate = CapacityGate(test_db, test_tenant.id)
    evaluation = await gate.evaluate()
    assert evaluation.action == "none"
    assert evaluation.active_orders == 9

    await make_order(status="confirmed")
    evaluation = await gate.evaluate()
    assert evaluation.action == "closed"
    assert evaluation.active_orders == 10
    assert evaluation.threshold == 10

    state = await gate.get_state()
    assert state.is_open is False
    assert state.version == 1
    assert _alerts(sent_tasks) == [[str(test_tenant.id), "closed", "10", "10"]]

    # Same load again: already closed, nothing to do
    evaluation = await gate.evaluate()
    assert evaluation.action == "none"
    assert len(_alerts(sent_tasks)) == 1

    result = await test_db.execute(select(AuditLog).where(AuditLog.action == "kitchen_closed"))
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_reopen_uses_hysteresis_band(test_db, test_tenant, make_order, sent_tasks):
    orders = [await make_order(status="ready") for _ in range(10)]
    gate = CapacityGate(test_db, test_tenant.id)
    assert (await gate.evaluate()).action == "closed"

    for count in (9, 8):
        await _set_active(test_db, orders, count)
        evaluation = await gate.evaluate()
        assert evaluation.action == "none"
        assert evaluation.active_orders == count

    await _set_active(test_db, orders, 7)
    evaluation = await gate.evaluate()
    assert evaluation.action == "opened"
    assert (await gate.get_state()).is_open is True

    assert [args[1] for args in _alerts(sent_tasks)] == ["closed", "reopened"]


@pytest.mark.asyncio
async def test_only_active_statuses_count(test_db, test_tenant, make_order):
    for status in ("pending", "scheduled", "confirmed", "preparing", "ready", "out_for_delivery", "completed", "cancelled"):
        await make_order(status=status)

    assert await CapacityGate(test_db, test_tenant.id).count_active_orders() == 3


@pytest.mark.asyncio
async def test_auto_close_disabled_is_noop(test_db, test_tenant, make_order, sent_tasks):
    gate = CapacityGate(test_db, test_tenant.id)
    await gate.set_state(auto_close_enabled=False)
    for _ in range(12):
        await make_order(status="confirmed")

    evaluation = await gate.evaluate()
    assert evaluation.action == "none"
    assert (await gate.get_state()).is_open is True
    assert _alerts(sent_tasks) == []


@pytest.mark.asyncio
async def test_lost_compare_and_swap_reports_none(test_db, test_tenant, make_order, sent_tasks, monkeypatch):
    for _ in range(10):
        await make_order(status="confirmed")

    gate = CapacityGate(test_db, test_tenant.id)
    real_count = gate.count_active_orders

    async def count_while_another_worker_writes():
        # Another evaluation flips the row between our read and our write
        await test_db.execute(
            update(OperatingState)
            .where(OperatingState.tenant_id == test_tenant.id)
            .values(is_open=False, version=OperatingState.version + 1)
            .execution_options(synchronize_session=False)
        )
        await test_db.commit()
        return await real_count()

    monkeypatch.setattr(gate, "count_active_orders", count_while_another_worker_writes)

    evaluation = await gate.evaluate()
    assert evaluation.action == "none"
    assert _alerts(sent_tasks) == []


@pytest.mark.asyncio
async def test_missing_state_row_is_created_closed(test_db, test_tenant):
    await test_db.execute(
        OperatingState.__table__.delete().where(OperatingState.tenant_id == test_tenant.id)
    )
    await test_db.commit()

    state = await CapacityGate(test_db, test_tenant.id).get_state()
    assert state.is_open is False
    assert state.max_active_orders == 10


@pytest.mark.asyncio
async def test_status_reports_load(test_db, test_tenant, make_order):
    for _ in range(5):
        await make_order(status="preparing")

    status = await CapacityGate(test_db, test_tenant.id).status()
    assert status.active_orders == 5
    assert status.max_orders == 10
    assert status.capacity_percentage == 50
    assert status.can_accept_orders is True


@pytest.mark.asyncio
async def test_capacity_endpoints(authenticated_client, test_tenant, make_order):
    for _ in range(10):
        await make_order(status="confirmed")

    response = await authenticated_client.get(f"/tenants/{test_tenant.id}/kitchen/capacity")
    assert response.status_code == 200
    assert response.json()["can_accept_orders"] is False

    response = await authenticated_client.post(f"/tenants/{test_tenant.id}/kitchen/capacity/evaluate")
    assert response.status_code == 200
    assert response.json() == {"action": "closed", "active_orders": 10, "threshold": 10}

    response = await authenticated_client.put(
        f"/tenants/{test_tenant.id}/kitchen/status",
        json={"is_open": True, "max_active_orders": 15},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_open"] is True
    assert data["max_orders"] == 15
    assert data["can_accept_orders"] is True


@pytest.mark.asyncio
async def test_capacity_requires_auth(client, test_tenant):
    response = await client.get(f"/tenants/{test_tenant.id}/kitchen/capacity")
    assert response.status_code == 401


async def _state(test_db, tenant_id):
    result = await test_db.execute(
        select(OperatingState)
        .where(OperatingState.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_hours_sync_acts_on_window_changes(test_db, test_tenant, sent_tasks):
    gate = CapacityGate(test_db, test_tenant.id)
    closing = HoursCheck(False, "Closed for the day")
    opening = HoursCheck(True, "Within operating hours")

    assert await gate.sync_with_hours(closing) == "closed"
    state = await _state(test_db, test_tenant.id)
    assert state.is_open is False
    assert state.hours_open is False

    result = await test_db.execute(select(AuditLog).where(AuditLog.action == "kitchen_closed"))
    assert result.scalar_one().data_json["source"] == "operating_hours"

    # Still outside hours: nothing to do, and the capacity gate keeps it shut
    assert await gate.sync_with_hours(closing) == "none"
    assert (await gate.evaluate()).action == "none"
    assert (await _state(test_db, test_tenant.id)).is_open is False

    assert await gate.sync_with_hours(opening) == "opened"
    assert (await _state(test_db, test_tenant.id)).is_open is True

    # A manual close inside opening hours holds until the window changes
    await gate.set_state(is_open=False)
    assert await gate.sync_with_hours(opening) == "none"
    assert (await _state(test_db, test_tenant.id)).is_open is False

    # Hours flips do not page the admins
    assert _alerts(sent_tasks) == []


@pytest.mark.asyncio
async def test_full_kitchen_stays_closed_when_window_opens(test_db, test_tenant, make_order):
    await test_db.execute(
        update(OperatingState)
        .where(OperatingState.tenant_id == test_tenant.id)
        .values(is_open=False, hours_open=False)
    )
    await test_db.commit()
    orders = [await make_order(status="confirmed") for _ in range(10)]

    gate = CapacityGate(test_db, test_tenant.id)
    assert await gate.sync_with_hours(HoursCheck(True, "Within operating hours")) == "none"
    state = await _state(test_db, test_tenant.id)
    assert state.is_open is False
    assert state.hours_open is True

    # Once load drops the capacity gate reopens
    await _set_active(test_db, orders, 7)
    assert (await gate.evaluate()).action == "opened"


@pytest.mark.asyncio
async def test_sync_tenant_hours(test_db, test_tenant):
    # 23:59:30 in Lagos, past the 23:59 close
    summary = await sync_tenant_hours(test_db, now=datetime(2024, 6, 3, 22, 59, 30))
    assert summary == {"opened": 0, "closed": 1, "skipped": 0}
    assert (await _state(test_db, test_tenant.id)).is_open is False

    summary = await sync_tenant_hours(test_db, now=datetime(2024, 6, 4, 11, 0))
    assert summary == {"opened": 1, "closed": 0, "skipped": 0}
    assert (await _state(test_db, test_tenant.id)).is_open is True
