"""Courier assignment schemas"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class AutoAssignRequest(BaseModel):
    order_id: UUID


class CandidateSummary(BaseModel):
    courier_id: UUID
    name: str
    score: float
    active_deliveries: int


class AssignedCourier(BaseModel):
    id: UUID
    name: str
    phone: str
    score: float
    cod_balance: Optional[Decimal] = None


class AssignmentScoring(BaseModel):
    is_cod_order: bool
    candidates_evaluated: int
    top_candidates: List[CandidateSummary]


class AutoAssignResponse(BaseModel):
    """Result of an automatic courier assignment"""
    success: bool = True
    assignment_id: UUID
    driver: AssignedCourier
    scoring: AssignmentScoring


class CompleteDeliveryRequest(BaseModel):
    """Courier hand-over confirmation"""
    courier_id: UUID
    cod_amount: Optional[Decimal] = Field(default=None, ge=0)


class CompleteDeliveryResponse(BaseModel):
    success: bool = True
    assignment_id: UUID
    order_id: UUID
    courier_id: UUID
    courier_status: str
    cod_collected: Optional[Decimal]
    courier_cod_balance: Decimal
    message: str = "Delivery completed successfully"
