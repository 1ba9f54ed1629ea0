"""
Supabase client wrapper for the vehicle store
"""
from supabase import create_client, Client
from functools import lru_cache
import logging

from vehicle_search.config import settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client(use_service_role: bool = False) -> Client:
    """
    Get Supabase client instance (cached)

    Args:
        use_service_role: If True, use service role key (bypasses RLS)

    Returns:
        Supabase client instance

    Raises:
        RuntimeError: If Supabase is not configured
    """
    key = (
        settings.supabase_service_role_key
        if use_service_role
        else settings.supabase_anon_key
    )
    if not settings.supabase_url or not key:
        raise RuntimeError("Supabase is not configured: set SUPABASE_URL and a Supabase key")

    try:
        client = create_client(settings.supabase_url, key)
        logger.info(f"Supabase client created (service_role={use_service_role})")
        return client
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        raise
