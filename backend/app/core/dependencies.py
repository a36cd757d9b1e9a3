"""
Dependency injection for shared clients and resources
"""
from functools import lru_cache

from supabase import create_client, Client

from app.core.config import settings


@lru_cache
def get_supabase_client() -> Client:
    """Get Supabase client instance"""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def get_repository():
    """Get the process-wide storage repository"""
    from app.services.storage import SupabaseRepository
    return SupabaseRepository(get_supabase_client())


@lru_cache
def get_container():
    """
    Get the process-wide service container

    Routes receive it through FastAPI's Depends; tests override it.
    """
    from app.services import ServiceContainer
    from app.services.external.whatsapp import send_whatsapp_message
    return ServiceContainer(get_repository(), send_whatsapp_message)
