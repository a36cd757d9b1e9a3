"""
Health Routes - Liveness and configuration checks
"""
from fastapi import APIRouter

from app.core.config import settings
from app.services.external.whatsapp import is_twilio_configured
from app.utils.timezone import get_reference_now

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Liveness probe; also reports which integrations are configured"""
    return {
        "status": "ok",
        "reference_time": get_reference_now().isoformat(),
        "integrations": {
            "storage": bool(settings.SUPABASE_URL and settings.SUPABASE_KEY),
            "whatsapp": is_twilio_configured(),
            "payments": bool(settings.TINKOFF_TERMINAL_KEY and settings.TINKOFF_PASSWORD),
        }
    }
