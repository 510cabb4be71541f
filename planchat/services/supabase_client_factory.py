"""
Utilities for creating Supabase clients with consistent settings.
"""

import logging
from functools import lru_cache

from supabase import AsyncClient, Client, acreate_client, create_client

from planchat.config import settings

logger = logging.getLogger(__name__)


def _credentials() -> tuple:
    supabase_url = settings.supabase_url
    supabase_key = settings.supabase_service_key or settings.supabase_anon_key
    if not supabase_url or not supabase_key:
        raise ValueError(
            "Supabase is not configured. Set SUPABASE_URL and SUPABASE_SERVICE_KEY "
            "(or SUPABASE_ANON_KEY) in the environment or .env"
        )
    return supabase_url, supabase_key


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Create (and cache) a Supabase client with shared configuration.

    Returns:
        Supabase Client instance configured with service role credentials.
    """
    supabase_url, supabase_key = _credentials()
    return create_client(supabase_url, supabase_key)


async def get_async_supabase_client() -> AsyncClient:
    """
    Create an async Supabase client for realtime subscriptions.

    Not cached: the realtime socket belongs to the event loop it was opened on.
    """
    supabase_url, supabase_key = _credentials()
    logger.info("Creating async Supabase client for realtime")
    return await acreate_client(supabase_url, supabase_key)
