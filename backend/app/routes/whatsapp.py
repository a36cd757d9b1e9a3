"""
WhatsApp Routes - Twilio webhook endpoints
"""
import logging
from fastapi import APIRouter, Depends, Request, HTTPException
from fastapi.concurrency import run_in_threadpool

from app.core.dependencies import get_container
from app.services.external.whatsapp import process_whatsapp_webhook, send_error_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


@router.post("")
async def whatsapp_webhook(request: Request, container=Depends(get_container)):
    """
    Webhook endpoint for receiving WhatsApp messages from Twilio

    Twilio sends messages as form data with fields:
    - From: Sender's WhatsApp number (e.g., "whatsapp:+13128856151")
    - Body: The text message content
    - ProfileName: Sender's WhatsApp display name (optional)
    """
    from_number = None
    try:
        form_data = dict(await request.form())
        from_number = form_data.get("From")
        return await run_in_threadpool(process_whatsapp_webhook, form_data, container.router, container.send)

    except ValueError as e:
        logger.error(f"[ERROR] Validation error: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"[ERROR] Unexpected error processing WhatsApp webhook: {str(e)}", exc_info=True)

        # If the user was told about the failure, return 200 so Twilio doesn't retry
        if from_number and await run_in_threadpool(send_error_message, from_number, container.send):
            return {"status": "error", "message": "Processing failed, user notified"}
        raise HTTPException(status_code=500, detail=str(e))
