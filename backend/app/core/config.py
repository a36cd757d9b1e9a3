"""
Application configuration and environment variables
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables"""

    # Database
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")

    # WhatsApp / Twilio
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_WHATSAPP_NUMBER: str = os.getenv("TWILIO_WHATSAPP_NUMBER", "")

    # Invite links
    BOT_LINK_BASE: str = os.getenv("BOT_LINK_BASE", "https://wa.me/")
    BOT_PHONE_NUMBER: str = os.getenv("BOT_PHONE_NUMBER", "")

    # Payments (Tinkoff Acquiring)
    TINKOFF_TERMINAL_KEY: str = os.getenv("TINKOFF_TERMINAL_KEY", "")
    TINKOFF_PASSWORD: str = os.getenv("TINKOFF_PASSWORD", "")
    TINKOFF_TEST_MODE: bool = os.getenv("TINKOFF_TEST_MODE", "false").lower() == "true"
    SUBSCRIPTION_PRICE: int = int(os.getenv("SUBSCRIPTION_PRICE", "19900"))

    # App
    REFERENCE_TIMEZONE: str = os.getenv("REFERENCE_TIMEZONE", "Europe/Moscow")
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


# Create a global settings instance
settings = Settings()
