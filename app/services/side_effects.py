"""Side effects of a confirmed order: kitchen ticket and notifications.

The print job row is the idempotency marker. Whoever inserts it dispatches
the immediate print attempt and the notifications; a duplicate confirmation
finds the row and dispatches nothing. All dispatches are fire-and-forget
through the task queue.
"""

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.jobs.dispatch import enqueue
from app.models.order import Order
from app.models.print_job import PrintJob
from app.services.printing import receipt_payload

logger = structlog.get_logger()


class SideEffectDispatcher:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def on_confirmed(self, order: Order) -> bool:
        """Queue the ticket and notifications once per order.

        Returns True when this call created the print job. Never raises.
        """
        order_id = order.id
        try:
            job_id = await self._create_print_job(order)
        except Exception:
            await self.db.rollback()
            logger.exception("Failed to queue print job", order_id=str(order_id))
            return False

        if job_id is None:
            logger.info("Side effects already dispatched", order_id=str(order_id))
            return False

        # The job stays pending for the sweeper if this attempt fails
        enqueue("print_order", job_id)
        enqueue("send_order_confirmation", order_id)
        enqueue("send_new_order_alert", order_id)
        return True

    async def _create_print_job(self, order: Order):
        order_id = order.id
        existing = await self.db.execute(select(PrintJob.id).where(PrintJob.order_id == order_id))
        if existing.scalar_one_or_none() is not None:
            return None

        job = PrintJob(
            tenant_id=order.tenant_id,
            order_id=order_id,
            payload=receipt_payload(order),
            status="pending",
            attempts=0,
        )
        self.db.add(job)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return None

        logger.info("Print job queued", order_id=str(order_id), job_id=str(job.id))
        return job.id
