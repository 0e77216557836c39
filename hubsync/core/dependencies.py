"""
Dependency construction
Builds the HTTP client, Supabase client and action sink from settings

Each run builds fresh instances: Dramatiq workers run in separate
processes, so nothing is shared globally.
"""
import logging
from typing import Optional

import httpx
from supabase import create_client, Client

from hubsync.core.config import settings
from hubsync.services.sync.persistence import (
    ActionSink,
    CompositeSink,
    JsonlSink,
    LoggingSink,
    SupabaseSink,
)

logger = logging.getLogger(__name__)


def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.hubspot_timeout_seconds),
        limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
    )


def create_supabase_client() -> Optional[Client]:
    if not settings.supabase_url or not settings.supabase_service_key:
        logger.warning("⚠️  Supabase not configured (SUPABASE_URL / SUPABASE_SERVICE_KEY missing)")
        return None

    try:
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        logger.info("✅ Supabase client initialized")
        return client
    except Exception as e:
        logger.error(f"❌ Failed to initialize Supabase: {e}")
        raise


def build_sink(supabase: Optional[Client]) -> ActionSink:
    """
    Supabase actions table when available, log-only otherwise;
    plus a JSONL copy when SAVE_JSONL is on.
    """
    sinks = [SupabaseSink(supabase, settings.actions_table) if supabase else LoggingSink()]
    if settings.save_jsonl:
        sinks.append(JsonlSink(settings.jsonl_path))
    return sinks[0] if len(sinks) == 1 else CompositeSink(sinks)
