"""
WhatsApp Service - Twilio messaging logic
"""
import logging
from typing import Optional

from twilio.rest import Client

from app.core.config import settings
from app.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

# Initialize Twilio client if credentials are available
twilio_client = None
if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
    twilio_client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
    logger.info("Twilio client initialized successfully")
else:
    logger.warning("Twilio credentials not found. WhatsApp integration will not work.")


def send_whatsapp_message(to_number: str, message: str) -> str:
    """
    Send a WhatsApp message via Twilio

    Args:
        to_number: Recipient WhatsApp number (e.g., "whatsapp:+13128856151")
        message: Message text to send

    Returns:
        Message SID from Twilio

    Raises:
        ExternalServiceError: If Twilio client not configured or send fails
    """
    if not twilio_client:
        raise ExternalServiceError("Twilio client not configured")

    logger.info(f"[TWILIO] Sending message to {to_number}")

    try:
        twilio_message = twilio_client.messages.create(
            from_=settings.TWILIO_WHATSAPP_NUMBER or "whatsapp:+14155238886",
            body=message,
            to=to_number
        )
        logger.info(f"[TWILIO] Message sent with SID: {twilio_message.sid}")
        return twilio_message.sid
    except Exception as e:
        logger.error(f"[TWILIO] Send failed: {str(e)}")
        raise ExternalServiceError(f"Twilio send failed: {e}")


def is_twilio_configured() -> bool:
    """Check if Twilio client is configured"""
    return twilio_client is not None


def extract_message_data(form_data: dict) -> tuple[str, str, Optional[str]]:
    """
    Extract and validate message data from Twilio form data

    Returns:
        Tuple of (from_number, message_body, profile_name)

    Raises:
        ValueError: If required fields are missing
    """
    from_number = form_data.get("From")
    message_body = (form_data.get("Body") or "").strip()
    profile_name = form_data.get("ProfileName") or None

    logger.info(f"[WEBHOOK] Received WhatsApp message from {from_number}: {message_body}")

    if not from_number:
        raise ValueError("Missing 'From' field")

    return from_number, message_body, profile_name


def process_whatsapp_webhook(form_data: dict, router, send=send_whatsapp_message) -> dict:
    """
    Process incoming WhatsApp webhook from Twilio

    Args:
        form_data: Form data dictionary from Twilio webhook
        router: CommandRouter handling the message text
        send: Transport callback send(to_number, message)

    Returns:
        Dictionary with status and message_sid

    Raises:
        ValueError: If required fields are missing
        ExternalServiceError: If sending the reply fails
        DatabaseError: If the sender cannot be registered
    """
    from_number, message_body, profile_name = extract_message_data(form_data)

    if not message_body:
        response_text = "I didn't receive any message. Please send a text message, or 'help'."
    else:
        response_text = router.handle(from_number, message_body, profile_name)

    message_sid = send(from_number, response_text)
    return {"status": "success", "message_sid": message_sid}


def send_error_message(from_number: str, send=send_whatsapp_message) -> bool:
    """
    Send error message to user when webhook processing fails

    Args:
        from_number: User's WhatsApp number
        send: Transport callback

    Returns:
        True if the user was notified
    """
    if not from_number:
        return False

    logger.info(f"[ERROR RECOVERY] Attempting to send error message to {from_number}")
    try:
        send(from_number, "❌ Sorry, I encountered an error processing your message. Please try again.")
        logger.info("[ERROR RECOVERY] Error message sent")
        return True
    except ExternalServiceError as recovery_error:
        logger.error(f"[ERROR RECOVERY] Failed to send error message: {str(recovery_error)}")
        return False
