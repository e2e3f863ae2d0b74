"""Paystack webhook handler"""

import json
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.database import get_db
from app.services.errors import FulfillmentError
from app.services.payments import confirm_payment, mark_payment_failed, verify_signature

router = APIRouter()
logger = structlog.get_logger()


def _order_id(data: dict) -> Optional[UUID]:
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        return None
    try:
        return UUID(str(metadata.get("order_id")))
    except ValueError:
        return None


@router.post("")
async def handle_paystack_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    x_paystack_signature: Optional[str] = Header(default=None),
):
    """
    Handle a Paystack charge event.
    Once the signature checks out the event is always acknowledged, so
    Paystack does not keep redelivering events we failed to process.
    """
    body = await request.body()

    # Verify signature
    if not x_paystack_signature:
        logger.warning("Paystack webhook without signature")
        raise HTTPException(status_code=401, detail="No signature provided")

    if not verify_signature(body, x_paystack_signature):
        logger.warning("Invalid Paystack signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    # Parse event
    try:
        event = json.loads(body)
    except ValueError:
        logger.error("Malformed Paystack payload")
        return {"received": True}

    event_type = event.get("event")
    data = event.get("data") or {}
    reference = data.get("reference", "")
    order_id = _order_id(data)

    logger.info("Paystack event", event_type=event_type, reference=reference)

    if event_type not in ("charge.success", "charge.failed"):
        logger.info("Unhandled Paystack event", event_type=event_type)
        return {"received": True}

    if order_id is None:
        logger.error("No order_id in Paystack metadata", event_type=event_type, reference=reference)
        return {"received": True}

    # Process event
    try:
        if event_type == "charge.success":
            result = await confirm_payment(db, order_id, reference, data)
            if result.already_processed:
                return {"received": True, "message": "Already processed"}
        else:
            await mark_payment_failed(db, order_id, reference, data)
    except FulfillmentError as e:
        logger.error(
            "Paystack event not processed",
            event_type=event_type,
            order_id=str(order_id),
            error=e.message,
        )
    except Exception:
        logger.exception("Paystack webhook processing failed", order_id=str(order_id))

    return {"received": True}
