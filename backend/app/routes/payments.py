"""
Payment Routes - Order creation and Tinkoff notification webhook
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from app.core.dependencies import get_container
from app.core.exceptions import (
    DatabaseError,
    NotFoundError,
    PaymentGatewayError,
    PaymentVerificationError
)
from app.models.payment import CreatePaymentRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("", status_code=201)
def create_payment(request: CreatePaymentRequest, container=Depends(get_container)):
    """Create a payment order for one subscription period"""
    try:
        return container.payments.create_payment(request.user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/notification", response_class=PlainTextResponse)
async def payment_notification(request: Request, container=Depends(get_container)):
    """
    Webhook for Tinkoff payment status notifications

    The gateway expects a plain "OK" body; anything else makes it retry.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid notification body")

    logger.info(f"[WEBHOOK] Payment notification: OrderId={payload.get('OrderId')}, Status={payload.get('Status')}")

    try:
        confirmed = container.payments.process_notification(payload)
    except PaymentVerificationError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DatabaseError as e:
        logger.error(f"[WEBHOOK] Failed to process payment notification: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")

    if confirmed is not None:
        container.notifications.dispatch([confirmed])
    return "OK"


@router.post("/{order_id}/refresh")
def refresh_payment(order_id: str, container=Depends(get_container)):
    """Manually re-check an order at the gateway and credit it if confirmed"""
    try:
        confirmed = container.payments.refresh_payment(order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if confirmed is not None:
        container.notifications.dispatch([confirmed])
    return {"order_id": order_id, "confirmed": confirmed is not None}
