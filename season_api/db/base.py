from functools import lru_cache

from supabase import Client, create_client

from season_api.core.config import get_settings


@lru_cache
def _service_client() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_key)


def get_supabase() -> Client:
    return _service_client()
