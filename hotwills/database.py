"""Supabase client factory and remote layout constants."""

import logging
from typing import Any, Dict, Optional

from supabase import AsyncClient, Client, acreate_client, create_client

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

_supabase_client: Client | None = None


# =============================================================================
# Column names (keep in sync with the `models` / `profiles` tables)
# =============================================================================

ENTRY_COLUMNS = "id,name,year,code,image_file,source_link,created_by,updated_at"
IMAGE_REF_COLUMNS = "id,image_file"
SIMILAR_COLUMNS = "name,year,code,image_file,source_link,created_by"
PROFILE_COLUMNS = "user_id,email"

OWNER_COLUMN = "created_by"
IMAGE_COLUMN = "image_file"
# Unique constraint (created_by, image_file): a row is keyed per owner.
UPSERT_CONFLICT_TARGET = f"{OWNER_COLUMN},{IMAGE_COLUMN}"


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise ValueError("HOTWILLS_SUPABASE_URL and HOTWILLS_SUPABASE_ANON_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, settings.supabase_anon_key)
    return _supabase_client


def reset_supabase_client() -> None:
    """Drop the cached client (sign-out, tests)."""
    global _supabase_client
    _supabase_client = None


async def create_realtime_client(settings: Settings | None = None) -> AsyncClient:
    """Create an async client for realtime channels.

    Realtime subscriptions are only available on the async client, so the
    live-change notifier gets its own connection.
    """
    if settings is None:
        settings = get_settings()
    return await acreate_client(settings.supabase_url, settings.supabase_anon_key)


def restore_session(client: Client, credentials: Optional[Dict[str, Any]]) -> bool:
    """Install a stored session on ``client``.

    Returns:
        True if a session was restored.
    """
    if not credentials:
        return False
    access_token = credentials.get("access_token")
    refresh_token = credentials.get("refresh_token")
    if not access_token or not refresh_token:
        return False
    try:
        client.auth.set_session(access_token, refresh_token)
    except Exception as e:
        # An expired refresh token means the user has to sign in again.
        logger.warning("Stored session could not be restored: %s", e)
        return False
    return True
