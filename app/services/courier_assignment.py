"""Courier assignment scoring.

Each available courier gets a score (lower is better):

- distance from the restaurant, 5 points per km capped at 50; couriers
  without a known location get 25 so they are neither favoured nor buried
- 15 points per open delivery
- for cash-on-delivery orders, 1 point per 1000 of unsettled cash, capped at 20

The lowest score wins, ties going to the earliest candidate. Completing
a delivery puts the courier back in the pool and books any cash collected
against their balance.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.jobs.dispatch import enqueue
from app.models.audit import AuditLog
from app.models.courier import (
    OPEN_ASSIGNMENT_STATUSES,
    AssignmentStatus,
    Courier,
    CourierStatus,
    DeliveryAssignment,
)
from app.models.order import ACTIVE_ORDER_STATUSES, Order, OrderStatus, PaymentStatus
from app.services.errors import NoAvailableCourier, NotFoundError, ValidationError
from app.services.geo import haversine_km

logger = structlog.get_logger()

KM_WEIGHT = 5
MAX_DISTANCE_SCORE = 50
UNKNOWN_LOCATION_SCORE = 25
PER_DELIVERY_SCORE = 15
COD_UNIT = 1000
MAX_COD_SCORE = 20

ASSIGNABLE_ORDER_STATUSES = (OrderStatus.READY.value, OrderStatus.PREPARING.value)


@dataclass
class Candidate:
    courier_id: UUID
    name: str
    phone: str
    latitude: Optional[float]
    longitude: Optional[float]
    cod_balance: Decimal = Decimal("0")
    active_deliveries: int = 0
    score: float = 0.0


@dataclass
class AssignmentResult:
    assignment_id: UUID
    courier: Candidate
    score: float
    candidates_evaluated: int
    is_cod_order: bool
    top_candidates: List[Candidate] = field(default_factory=list)


@dataclass
class CompletionResult:
    assignment_id: UUID
    order_id: UUID
    courier_id: UUID
    cod_collected: Optional[Decimal]
    courier_status: str
    courier_cod_balance: Decimal


def distance_score(
    latitude: Optional[float],
    longitude: Optional[float],
    origin: Tuple[float, float],
) -> float:
    if latitude is None or longitude is None:
        return UNKNOWN_LOCATION_SCORE
    distance = haversine_km(origin[0], origin[1], latitude, longitude)
    return min(distance * KM_WEIGHT, MAX_DISTANCE_SCORE)


def score_candidate(candidate: Candidate, is_cod_order: bool, origin: Tuple[float, float]) -> float:
    score = distance_score(candidate.latitude, candidate.longitude, origin)
    score += candidate.active_deliveries * PER_DELIVERY_SCORE
    if is_cod_order:
        score += min(float(candidate.cod_balance or 0) / COD_UNIT, MAX_COD_SCORE)
    return score


def rank_candidates(
    candidates: Sequence[Candidate],
    is_cod_order: bool,
    origin: Tuple[float, float],
) -> List[Candidate]:
    """Score candidates and order them best first.

    ``sorted`` is stable, so equal scores keep their input order.
    """
    for candidate in candidates:
        candidate.score = score_candidate(candidate, is_cod_order, origin)
    return sorted(candidates, key=lambda c: c.score)


class CourierAssignmentService:
    def __init__(self, db: AsyncSession, tenant_id: UUID):
        self.db = db
        self.tenant_id = tenant_id
        self.origin = (settings.restaurant_latitude, settings.restaurant_longitude)

    async def assign(self, order_id: UUID, actor_id: Optional[UUID] = None) -> AssignmentResult:
        order = await self._get_order(order_id)

        if order.status not in ASSIGNABLE_ORDER_STATUSES:
            raise ValidationError("Order is not ready for delivery assignment")
        if order.assigned_courier_id is not None:
            raise ValidationError("Order already has a driver assigned")

        candidates = await self._load_candidates()
        if not candidates:
            logger.warning("No available couriers", order_id=str(order_id))
            raise NoAvailableCourier(candidates_evaluated=0)

        is_cod_order = order.is_cod
        ranked = rank_candidates(candidates, is_cod_order, self.origin)

        for candidate in ranked:
            # Conditional flip; a concurrent assignment may have taken this courier
            claimed = await self.db.execute(
                update(Courier)
                .where(
                    Courier.id == candidate.courier_id,
                    Courier.status == CourierStatus.AVAILABLE.value,
                )
                .values(status=CourierStatus.BUSY.value)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await self.db.rollback()
                logger.info("Courier taken concurrently", courier_id=str(candidate.courier_id))
                continue

            assignment = DeliveryAssignment(
                tenant_id=self.tenant_id,
                order_id=order_id,
                courier_id=candidate.courier_id,
                status=AssignmentStatus.PENDING.value,
                score=candidate.score,
            )
            self.db.add(assignment)
            # A concurrent assignment may have given this order a courier already
            linked = await self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.assigned_courier_id.is_(None))
                .values(assigned_courier_id=candidate.courier_id)
                .execution_options(synchronize_session=False)
            )
            if linked.rowcount != 1:
                await self.db.rollback()
                logger.info("Order assigned concurrently", order_id=str(order_id))
                raise ValidationError("Order already has a driver assigned")
            self.db.add(
                AuditLog(
                    tenant_id=self.tenant_id,
                    actor_id=actor_id,
                    actor_type="user" if actor_id else "system",
                    action="courier_assigned",
                    resource_type="order",
                    resource_id=order_id,
                    data_json={
                        "courier_id": str(candidate.courier_id),
                        "score": candidate.score,
                        "candidates_evaluated": len(ranked),
                    },
                )
            )
            await self.db.commit()

            logger.info(
                "Courier assigned",
                order_id=str(order_id),
                courier_id=str(candidate.courier_id),
                score=candidate.score,
                candidates_evaluated=len(ranked),
                is_cod_order=is_cod_order,
            )
            enqueue("send_courier_assignment", assignment.id)

            return AssignmentResult(
                assignment_id=assignment.id,
                courier=candidate,
                score=candidate.score,
                candidates_evaluated=len(ranked),
                is_cod_order=is_cod_order,
                top_candidates=ranked[:3],
            )

        raise NoAvailableCourier(
            candidates_evaluated=len(ranked),
            message="All candidate drivers were assigned concurrently",
        )

    async def complete_assignment(
        self,
        assignment_id: UUID,
        courier_id: UUID,
        cod_amount: Optional[Decimal] = None,
        actor_id: Optional[UUID] = None,
    ) -> CompletionResult:
        """Close a delivery: order completed, courier back on the road, cash recorded"""
        result = await self.db.execute(
            select(DeliveryAssignment)
            .where(
                DeliveryAssignment.id == assignment_id,
                DeliveryAssignment.tenant_id == self.tenant_id,
                DeliveryAssignment.courier_id == courier_id,
            )
            .execution_options(populate_existing=True)
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            raise NotFoundError("Assignment not found")
        if assignment.status not in OPEN_ASSIGNMENT_STATUSES:
            raise ValidationError(f"Assignment is already {assignment.status}")

        order = await self._get_order(assignment.order_id)
        if order.status == OrderStatus.CANCELLED.value:
            raise ValidationError("Order was cancelled")

        cod_collected = cod_amount if cod_amount and cod_amount > 0 else None
        if cod_collected is not None and not order.is_cod:
            raise ValidationError("Cash collected on an order that was paid online")

        now = datetime.utcnow()
        closed = await self.db.execute(
            update(DeliveryAssignment)
            .where(
                DeliveryAssignment.id == assignment_id,
                DeliveryAssignment.status.in_(OPEN_ASSIGNMENT_STATUSES),
            )
            .values(status=AssignmentStatus.DELIVERED.value, completed_at=now, cod_collected=cod_collected)
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount != 1:
            await self.db.rollback()
            raise ValidationError("Assignment was completed concurrently")

        previous_status = order.status
        order_values = {}
        if previous_status != OrderStatus.COMPLETED.value:
            order_values["status"] = OrderStatus.COMPLETED.value
        if cod_collected is not None:
            order_values["payment_status"] = PaymentStatus.SUCCESS.value
        if order_values:
            await self.db.execute(
                update(Order)
                .where(Order.id == order.id)
                .values(**order_values)
                .execution_options(synchronize_session=False)
            )

        if cod_collected is not None:
            await self.db.execute(
                update(Courier)
                .where(Courier.id == courier_id)
                .values(cod_balance=Courier.cod_balance + cod_collected)
                .execution_options(synchronize_session=False)
            )
        # Offline couriers stay offline
        await self.db.execute(
            update(Courier)
            .where(Courier.id == courier_id, Courier.status == CourierStatus.BUSY.value)
            .values(status=CourierStatus.AVAILABLE.value)
            .execution_options(synchronize_session=False)
        )

        self.db.add(
            AuditLog(
                tenant_id=self.tenant_id,
                actor_id=actor_id,
                actor_type="user" if actor_id else "system",
                action="delivery_completed",
                resource_type="order",
                resource_id=order.id,
                data_json={
                    "assignment_id": str(assignment_id),
                    "courier_id": str(courier_id),
                    "cod_collected": str(cod_collected) if cod_collected is not None else None,
                },
            )
        )
        await self.db.commit()

        logger.info(
            "Delivery completed",
            order_id=str(order.id),
            assignment_id=str(assignment_id),
            courier_id=str(courier_id),
            cod_collected=str(cod_collected) if cod_collected is not None else None,
        )
        if previous_status in ACTIVE_ORDER_STATUSES:
            enqueue("evaluate_kitchen_capacity", self.tenant_id)

        courier = await self.db.get(Courier, courier_id, populate_existing=True)
        return CompletionResult(
            assignment_id=assignment_id,
            order_id=order.id,
            courier_id=courier_id,
            cod_collected=cod_collected,
            courier_status=courier.status,
            courier_cod_balance=courier.cod_balance,
        )

    async def _get_order(self, order_id: UUID) -> Order:
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id, Order.tenant_id == self.tenant_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def _load_candidates(self) -> List[Candidate]:
        result = await self.db.execute(
            select(Courier)
            .where(
                Courier.tenant_id == self.tenant_id,
                Courier.status == CourierStatus.AVAILABLE.value,
                Courier.is_active == True,
                Courier.vehicle_id.is_not(None),
            )
            .order_by(Courier.created_at, Courier.id)
        )
        couriers = result.scalars().all()
        if not couriers:
            return []

        workload = await self._open_delivery_counts([c.id for c in couriers])
        return [
            Candidate(
                courier_id=c.id,
                name=c.name,
                phone=c.phone,
                latitude=c.current_latitude,
                longitude=c.current_longitude,
                cod_balance=c.cod_balance or Decimal("0"),
                active_deliveries=workload.get(c.id, 0),
            )
            for c in couriers
        ]

    async def _open_delivery_counts(self, courier_ids: List[UUID]) -> Dict[UUID, int]:
        result = await self.db.execute(
            select(DeliveryAssignment.courier_id, func.count(DeliveryAssignment.id))
            .where(
                DeliveryAssignment.courier_id.in_(courier_ids),
                DeliveryAssignment.status.in_(OPEN_ASSIGNMENT_STATUSES),
            )
            .group_by(DeliveryAssignment.courier_id)
        )
        return {courier_id: count for courier_id, count in result.all()}
