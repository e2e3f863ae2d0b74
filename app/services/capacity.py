"""Kitchen capacity gate.

Opens and closes the kitchen from the number of active orders. Closing
happens at ``max_active_orders``; reopening waits until the count drops
below ``max(max_active_orders - 2, 1)`` so the state does not flap while
the kitchen hovers around the threshold.

The operating state is a single row per tenant. Flips are compare-and-swap
on its ``version`` column, so of several concurrent evaluations only one
wins the flip and only the winner raises the admin alert. The same swap
carries the opening-hours sync, which opens and closes the kitchen as the
day's window starts and ends.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.jobs.dispatch import enqueue
from app.models.audit import AuditLog
from app.models.order import ACTIVE_ORDER_STATUSES, Order
from app.models.tenant import OperatingState
from app.services.errors import DownstreamUnavailable
from app.services.hours import HoursCheck

logger = structlog.get_logger()

DEFAULT_MAX_ACTIVE_ORDERS = 10
HYSTERESIS_BUFFER = 2


@dataclass
class CapacityEvaluation:
    action: str  # none, closed, opened
    active_orders: int
    threshold: int


@dataclass
class CapacityStatus:
    is_open: bool
    auto_close_enabled: bool
    active_orders: int
    max_orders: int
    capacity_percentage: int
    can_accept_orders: bool


def reopen_threshold(max_active_orders: int) -> int:
    return max(max_active_orders - HYSTERESIS_BUFFER, 1)


class CapacityGate:
    """Admission control for a single tenant's kitchen"""

    def __init__(self, db: AsyncSession, tenant_id: UUID):
        self.db = db
        self.tenant_id = tenant_id

    async def count_active_orders(self) -> int:
        result = await self.db.execute(
            select(func.count(Order.id)).where(
                Order.tenant_id == self.tenant_id,
                Order.status.in_(ACTIVE_ORDER_STATUSES),
            )
        )
        return result.scalar() or 0

    async def get_state(self) -> OperatingState:
        """Load the tenant's operating state, creating the default row if missing"""
        result = await self.db.execute(
            select(OperatingState).where(OperatingState.tenant_id == self.tenant_id)
        )
        state = result.scalar_one_or_none()
        if state is None:
            state = OperatingState(
                tenant_id=self.tenant_id,
                is_open=False,
                auto_close_enabled=False,
                max_active_orders=DEFAULT_MAX_ACTIVE_ORDERS,
                version=0,
            )
            self.db.add(state)
            await self.db.commit()
        return state

    async def evaluate(self) -> CapacityEvaluation:
        try:
            state = await self.get_state()
            await self.db.refresh(state)
            threshold = state.max_active_orders

            if not state.auto_close_enabled:
                return CapacityEvaluation("none", 0, threshold)

            active = await self.count_active_orders()
            logger.info(
                "Kitchen status",
                tenant_id=str(self.tenant_id),
                active_orders=active,
                threshold=threshold,
                is_open=state.is_open,
            )

            if active >= threshold and state.is_open:
                if await self._flip(state, False, active):
                    enqueue("send_kitchen_capacity_alert", self.tenant_id, "closed", active, threshold)
                    return CapacityEvaluation("closed", active, threshold)
            elif (
                active < reopen_threshold(threshold)
                and not state.is_open
                # never reopen outside opening hours
                and state.hours_open is not False
            ):
                if await self._flip(state, True, active):
                    enqueue("send_kitchen_capacity_alert", self.tenant_id, "reopened", active, threshold)
                    return CapacityEvaluation("opened", active, threshold)

            return CapacityEvaluation("none", active, threshold)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Capacity evaluation failed", tenant_id=str(self.tenant_id), error=str(e))
            raise DownstreamUnavailable("Could not evaluate kitchen capacity") from e

    async def _swap(self, state: OperatingState, **values) -> bool:
        """Compare-and-swap on the row version; False when another writer got there first"""
        result = await self.db.execute(
            update(OperatingState)
            .where(
                OperatingState.id == state.id,
                OperatingState.version == state.version,
            )
            .values(version=state.version + 1, updated_at=datetime.utcnow(), **values)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            logger.info("Kitchen state changed concurrently", tenant_id=str(self.tenant_id))
            return False
        return True

    async def _flip(self, state: OperatingState, is_open: bool, active: int) -> bool:
        if not await self._swap(state, is_open=is_open):
            return False

        self.db.add(
            AuditLog(
                tenant_id=self.tenant_id,
                actor_type="system",
                action="kitchen_opened" if is_open else "kitchen_closed",
                resource_type="operating_state",
                resource_id=state.id,
                data_json={"active_orders": active, "threshold": state.max_active_orders},
            )
        )
        await self.db.commit()
        await self.db.refresh(state)

        logger.info(
            "Kitchen opened" if is_open else "Kitchen closed",
            tenant_id=str(self.tenant_id),
            active_orders=active,
            threshold=state.max_active_orders,
        )
        return True

    async def sync_with_hours(self, hours: HoursCheck) -> str:
        """Open or close the kitchen when the opening-hours window changes.

        Only window transitions act, so a manual close inside opening hours
        holds until the window next changes. A kitchen that is full when
        the window opens stays closed and the capacity gate reopens it once
        load drops.
        """
        try:
            state = await self.get_state()
            await self.db.refresh(state)
            if state.hours_open is not None and state.hours_open == hours.should_be_open:
                return "none"

            active = await self.count_active_orders()
            target = hours.should_be_open
            if target and state.auto_close_enabled and active >= state.max_active_orders:
                target = False

            changed = target != state.is_open
            if not await self._swap(state, is_open=target, hours_open=hours.should_be_open):
                return "none"

            if changed:
                self.db.add(
                    AuditLog(
                        tenant_id=self.tenant_id,
                        actor_type="system",
                        action="kitchen_opened" if target else "kitchen_closed",
                        resource_type="operating_state",
                        resource_id=state.id,
                        data_json={
                            "source": "operating_hours",
                            "reason": hours.reason,
                            "active_orders": active,
                        },
                    )
                )
            await self.db.commit()
            await self.db.refresh(state)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Hours sync failed", tenant_id=str(self.tenant_id), error=str(e))
            raise DownstreamUnavailable("Could not sync kitchen with operating hours") from e

        if not changed:
            return "none"
        logger.info(
            "Kitchen opened for the day" if target else "Kitchen closed for the day",
            tenant_id=str(self.tenant_id),
            reason=hours.reason,
            active_orders=active,
        )
        return "opened" if target else "closed"

    async def set_state(
        self,
        is_open: Optional[bool] = None,
        auto_close_enabled: Optional[bool] = None,
        max_active_orders: Optional[int] = None,
        actor_id: Optional[UUID] = None,
    ) -> OperatingState:
        """Manual override from the kitchen dashboard"""
        state = await self.get_state()
        values = {}
        if is_open is not None:
            values["is_open"] = is_open
        if auto_close_enabled is not None:
            values["auto_close_enabled"] = auto_close_enabled
        if max_active_orders is not None:
            values["max_active_orders"] = max_active_orders
        if not values:
            return state

        try:
            await self.db.execute(
                update(OperatingState)
                .where(OperatingState.id == state.id)
                .values(version=OperatingState.version + 1, updated_at=datetime.utcnow(), **values)
            )
            self.db.add(
                AuditLog(
                    tenant_id=self.tenant_id,
                    actor_id=actor_id,
                    actor_type="user",
                    action="kitchen_settings_updated",
                    resource_type="operating_state",
                    resource_id=state.id,
                    data_json=values,
                )
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to update kitchen state", tenant_id=str(self.tenant_id), error=str(e))
            raise DownstreamUnavailable("Could not update kitchen state") from e

        await self.db.refresh(state)
        return state

    async def status(self) -> CapacityStatus:
        state = await self.get_state()
        active = await self.count_active_orders()
        max_orders = state.max_active_orders
        return CapacityStatus(
            is_open=state.is_open,
            auto_close_enabled=state.auto_close_enabled,
            active_orders=active,
            max_orders=max_orders,
            capacity_percentage=round(active / max_orders * 100) if max_orders else 0,
            can_accept_orders=state.is_open and active < max_orders,
        )
