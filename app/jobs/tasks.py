"""Background job tasks"""

from datetime import datetime
from typing import Optional
from uuid import UUID
import asyncio
import structlog

from app.jobs.celery_app import celery_app
from app.config import settings

logger = structlog.get_logger()


def run_async(coro):
    """Helper to run async functions in sync context.

    Each call gets a fresh event loop, so pooled connections are dropped
    before the loop closes.
    """
    async def _run():
        from app.database import engine

        try:
            return await coro
        finally:
            await engine.dispose()

    return asyncio.run(_run())


def order_context(order) -> dict:
    return {
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "total": f"{order.total:,.2f}",
    }


async def attempt_print(db, job_id: UUID, transport=None) -> bool:
    """Try one print of a pending job and record the outcome"""
    from app.models.print_job import PrintJob
    from app.services.printing import NetworkPrintTransport

    transport = transport or NetworkPrintTransport()
    job = await db.get(PrintJob, job_id)
    if job is None or job.status != "pending":
        return False

    result = await transport.print_now(job.payload)
    job.attempts += 1
    if result.success:
        job.status = "printed"
        job.processed_at = datetime.utcnow()
        job.last_error = None
    else:
        job.last_error = result.message
        if job.attempts >= settings.print_max_attempts:
            job.status = "failed"
    await db.commit()

    logger.info(
        "Print attempt",
        job_id=str(job_id),
        order_id=str(job.order_id),
        success=result.success,
        attempts=job.attempts,
        status=job.status,
    )
    return result.success


async def sweep_print_queue(db, transport=None) -> dict:
    """Retry pending print jobs, oldest first"""
    from app.models.print_job import PrintJob
    from sqlalchemy import select

    result = await db.execute(
        select(PrintJob.id)
        .where(
            PrintJob.status == "pending",
            PrintJob.attempts < settings.print_max_attempts,
        )
        .order_by(PrintJob.created_at)
        .limit(settings.print_batch_size)
    )
    job_ids = result.scalars().all()

    summary = {"processed": 0, "succeeded": 0, "failed": 0}
    for job_id in job_ids:
        summary["processed"] += 1
        if await attempt_print(db, job_id, transport):
            summary["succeeded"] += 1
        else:
            summary["failed"] += 1
    return summary


@celery_app.task(name="print_order")
def print_order(job_id: str):
    """Immediate print attempt right after confirmation"""
    logger.info("Printing order ticket", job_id=job_id)

    async def _print():
        from app.database import SessionLocal

        async with SessionLocal() as db:
            await attempt_print(db, UUID(job_id))

    run_async(_print())


@celery_app.task(name="process_print_queue")
def process_print_queue():
    """Retry kitchen tickets whose immediate print failed"""

    async def _sweep():
        from app.database import SessionLocal

        async with SessionLocal() as db:
            summary = await sweep_print_queue(db)
            if summary["processed"]:
                logger.info("Print queue processed", **summary)

    run_async(_sweep())


async def _notify_customer(order_id: str, event: str) -> Optional[bool]:
    from app.database import SessionLocal
    from app.models.order import Order
    from app.services.notifications import NotificationSender

    async with SessionLocal() as db:
        order = await db.get(Order, UUID(order_id))
        if order is None:
            logger.warning("Order not found for notification", order_id=order_id)
            return None
        return NotificationSender().send(order.customer_phone, event, order_context(order))


async def _notify_admins(tenant_id: UUID, event: str, context: dict) -> int:
    from app.database import SessionLocal
    from app.services.notifications import NotificationSender, send_admin_alert

    async with SessionLocal() as db:
        return await send_admin_alert(db, NotificationSender(), tenant_id, event, context)


@celery_app.task(name="send_order_confirmation")
def send_order_confirmation(order_id: str):
    run_async(_notify_customer(order_id, "order_confirmed"))


@celery_app.task(name="send_payment_failed_notice")
def send_payment_failed_notice(order_id: str):
    async def _send():
        from app.database import SessionLocal
        from app.models.order import Order

        await _notify_customer(order_id, "payment_failed")
        async with SessionLocal() as db:
            order = await db.get(Order, UUID(order_id))
            if order is not None:
                await _notify_admins(order.tenant_id, "payment_failure_alert", order_context(order))

    run_async(_send())


@celery_app.task(name="send_new_order_alert")
def send_new_order_alert(order_id: str):
    async def _send():
        from app.database import SessionLocal
        from app.models.order import Order

        async with SessionLocal() as db:
            order = await db.get(Order, UUID(order_id))
            if order is None:
                return
            context = order_context(order)
            tenant_id = order.tenant_id
        await _notify_admins(tenant_id, "new_order", context)

    run_async(_send())


@celery_app.task(name="send_kitchen_capacity_alert")
def send_kitchen_capacity_alert(tenant_id: str, action: str, active_orders: str, threshold: str):
    event = "kitchen_closed" if action == "closed" else "kitchen_reopened"
    context = {"active_orders": active_orders, "threshold": threshold}
    delivered = run_async(_notify_admins(UUID(tenant_id), event, context))
    logger.info("Kitchen capacity alert sent", tenant_id=tenant_id, action=action, delivered=delivered)


async def notify_courier_assignment(db, assignment_id: UUID, sender=None) -> bool:
    """Tell the courier about a new delivery"""
    from app.models.courier import Courier, DeliveryAssignment
    from app.models.order import Order
    from app.services.notifications import NotificationSender

    assignment = await db.get(DeliveryAssignment, assignment_id)
    if assignment is None:
        logger.warning("Assignment not found for notification", assignment_id=str(assignment_id))
        return False

    courier = await db.get(Courier, assignment.courier_id)
    order = await db.get(Order, assignment.order_id)
    if courier is None or order is None:
        logger.warning(
            "Courier or order not found for assignment",
            assignment_id=str(assignment_id),
            courier_found=courier is not None,
            order_found=order is not None,
        )
        return False

    context = order_context(order)
    context.update(
        courier_name=courier.name,
        delivery_address=order.delivery_address or "carryout",
    )
    return (sender or NotificationSender()).send(courier.phone, "courier_assigned", context)


@celery_app.task(name="send_courier_assignment")
def send_courier_assignment(assignment_id: str):
    async def _send():
        from app.database import SessionLocal

        async with SessionLocal() as db:
            await notify_courier_assignment(db, UUID(assignment_id))

    run_async(_send())


async def sync_tenant_hours(db, now: Optional[datetime] = None) -> dict:
    """Open or close every active tenant's kitchen from its opening hours"""
    from sqlalchemy import select
    from app.models.tenant import Tenant
    from app.services.capacity import CapacityGate
    from app.services.errors import DownstreamUnavailable
    from app.services.hours import load_schedule, should_be_open_now

    result = await db.execute(select(Tenant.id, Tenant.timezone).where(Tenant.is_active == True))
    tenants = result.all()

    summary = {"opened": 0, "closed": 0, "skipped": 0}
    for tenant_id, tz_name in tenants:
        schedule = await load_schedule(db, tenant_id)
        if schedule is None:
            # No hours configured; leave the kitchen to manual control
            summary["skipped"] += 1
            continue

        hours = should_be_open_now(schedule, tz_name or settings.restaurant_timezone, now)
        try:
            action = await CapacityGate(db, tenant_id).sync_with_hours(hours)
        except DownstreamUnavailable as e:
            logger.error("Hours sync skipped", tenant_id=str(tenant_id), error=e.message)
            summary["skipped"] += 1
            continue
        if action in summary:
            summary[action] += 1
    return summary


@celery_app.task(name="sync_operating_hours")
def sync_operating_hours():
    """Auto open/close kitchens as their opening hours start and end"""

    async def _sync():
        from app.database import SessionLocal

        async with SessionLocal() as db:
            summary = await sync_tenant_hours(db)
            if summary["opened"] or summary["closed"]:
                logger.info("Operating hours synced", **summary)

    run_async(_sync())


@celery_app.task(name="evaluate_kitchen_capacity")
def evaluate_kitchen_capacity(tenant_id: str):
    """Re-run the capacity gate after an order enters or leaves the kitchen"""

    async def _evaluate():
        from app.database import SessionLocal
        from app.services.capacity import CapacityGate
        from app.services.errors import DownstreamUnavailable

        async with SessionLocal() as db:
            try:
                evaluation = await CapacityGate(db, UUID(tenant_id)).evaluate()
            except DownstreamUnavailable as e:
                logger.error("Capacity evaluation skipped", tenant_id=tenant_id, error=e.message)
                return
            logger.info(
                "Capacity evaluated",
                tenant_id=tenant_id,
                action=evaluation.action,
                active_orders=evaluation.active_orders,
                threshold=evaluation.threshold,
            )

    run_async(_evaluate())
