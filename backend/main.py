"""
FastAPI Application Entry Point
"""
from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI

from app.core.config import settings
from app.routes import achievements, admin, habits, health, payments, referrals, users, whatsapp
from app.services.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Silence noisy third-party loggers
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)
logging.getLogger('twilio').setLevel(logging.WARNING)
logging.getLogger('apscheduler.scheduler').setLevel(logging.WARNING)
logging.getLogger('apscheduler.executors').setLevel(logging.WARNING)
logging.getLogger('apscheduler.executors.default').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager for startup/shutdown events
    """
    # Startup
    try:
        start_scheduler()
        logger.info("✓ Background scheduler started")
    except Exception as e:
        logger.warning(f"Could not start scheduler: {e}")

    yield

    # Shutdown
    try:
        stop_scheduler()
        logger.info("✓ Background scheduler stopped")
    except Exception as e:
        logger.warning(f"Error stopping scheduler: {e}")


# Initialize FastAPI app with lifespan
app = FastAPI(
    title="Habit Tracker API",
    version="0.1.0",
    lifespan=lifespan
)

# Register routes
app.include_router(health.router)
app.include_router(users.router)
app.include_router(habits.router)
app.include_router(achievements.router)
app.include_router(referrals.router)
app.include_router(payments.router)
app.include_router(whatsapp.router)
app.include_router(admin.router)
