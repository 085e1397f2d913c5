"""Supabase client for the facility, home base and route plan tables."""

import logging
from functools import lru_cache
from supabase import Client, ClientOptions, create_client
from ..config import settings


@lru_cache()
def get_supabase_client() -> Client | None:
    """Shared client, or None when the store is not configured.

    Creating the client does not contact the server; the first query
    surfaces network problems.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logging.warning("Supabase credentials not configured (missing URL or key)")
        return None

    options = ClientOptions(
        schema=settings.supabase_schema,
        postgrest_client_timeout=settings.supabase_timeout_seconds,
    )
    try:
        return create_client(settings.supabase_url, settings.supabase_key, options=options)
    except Exception as e:
        logging.error(f"Failed to create Supabase client for schema '{settings.supabase_schema}': {e}")
        return None
