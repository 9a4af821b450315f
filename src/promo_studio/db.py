from __future__ import annotations

from functools import lru_cache

from supabase import Client, create_client

from promo_studio.config import settings
from promo_studio.errors import NotConfiguredError


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise NotConfiguredError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")
    return create_client(settings.supabase_url, settings.supabase_service_role_key)
