"""Client-side payment verification"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.database import get_db
from app.models.order import Order
from app.schemas.order import OrderResponse, VerifyPaymentRequest, VerifyPaymentResponse
from app.services.errors import NotFoundError
from app.services.payments import PaystackClient, confirm_payment, mark_payment_failed

router = APIRouter()
logger = structlog.get_logger()


def get_paystack_client() -> PaystackClient:
    return PaystackClient()


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
async def verify_payment(
    request: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    """Verify a checkout with Paystack and confirm the order"""
    if await db.get(Order, request.order_id) is None:
        raise NotFoundError("Order not found")

    # Verify with Paystack
    verification = await paystack.verify(request.reference)

    if not verification.succeeded:
        await mark_payment_failed(db, request.order_id, request.reference, verification.raw)
        logger.info(
            "Payment not successful",
            order_id=str(request.order_id),
            payment_status=verification.status,
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Payment was not successful", "payment_status": verification.status},
        )

    result = await confirm_payment(db, request.order_id, request.reference, verification.raw)

    return VerifyPaymentResponse(
        success=True,
        order=OrderResponse.from_order(result.order),
        message="Payment already verified" if result.already_processed else "Payment verified successfully",
    )
