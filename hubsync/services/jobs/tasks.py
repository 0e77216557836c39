"""
Dramatiq Background Tasks
Runs the HubSpot pull as a one-shot job (also used directly by main.py)
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import dramatiq
import httpx
from supabase import Client

from hubsync.core.dependencies import build_sink, create_http_client, create_supabase_client
from hubsync.core.exceptions import NoAccountsError
from hubsync.models.schemas import AccountSyncSummary
from hubsync.services.jobs.broker import broker  # noqa: F401  (registers the broker before actors)
from hubsync.services.sync.database import SupabaseAccountStore
from hubsync.services.sync.orchestration.hubspot_sync import HubSpotSyncOrchestrator
from hubsync.services.sync.persistence import ActionSink
from hubsync.services.sync.providers.hubspot import HubSpotClient
from hubsync.services.sync.queue import ActionQueue

logger = logging.getLogger(__name__)


async def pull_data_from_hubspot(
    http_client: Optional[httpx.AsyncClient] = None,
    supabase: Optional[Client] = None,
    sink: Optional[ActionSink] = None
) -> List[AccountSyncSummary]:
    """
    Pull every configured account once.

    Builds missing dependencies from settings and closes the HTTP client it
    created, in the same event loop.

    Raises:
        NoAccountsError: no account store configured or no accounts in it
    """
    owns_http_client = http_client is None
    http_client = http_client or create_http_client()

    try:
        supabase = supabase or create_supabase_client()
        if supabase is None:
            raise NoAccountsError("No account store configured")

        orchestrator = HubSpotSyncOrchestrator(
            client=HubSpotClient(http_client),
            account_store=SupabaseAccountStore(supabase),
            queue=ActionQueue(sink or build_sink(supabase))
        )
        return await orchestrator.run()
    finally:
        if owns_http_client:
            await http_client.aclose()


@dramatiq.actor(max_retries=3, throws=(NoAccountsError,))
def pull_hubspot_task(job_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Background job for a full HubSpot pull.

    Args:
        job_id: Optional identifier for log correlation
    """
    logger.info(f"🚀 Starting HubSpot pull job {job_id or '-'}")

    try:
        summaries = asyncio.run(pull_data_from_hubspot())
    except Exception as e:
        logger.error(f"❌ HubSpot pull job {job_id or '-'} failed: {e}")
        raise  # Re-raise for Dramatiq retry logic

    total = sum(summary.actions_enqueued for summary in summaries)
    logger.info(f"✅ HubSpot pull job {job_id or '-'} complete: {len(summaries)} accounts, {total} actions")
    return [summary.model_dump() for summary in summaries]
