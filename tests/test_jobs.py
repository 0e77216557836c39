"""
Tests for the one-shot pull entry used by main.py and the Dramatiq actor.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from hubsync.core.exceptions import NoAccountsError
from hubsync.models.schemas import AccountSyncSummary
from hubsync.services.jobs import tasks


class TestPullDataFromHubspot:

    @pytest.mark.asyncio
    async def test_missing_account_store_raises_no_accounts(self):
        http_client = MagicMock(spec=httpx.AsyncClient)
        http_client.aclose = AsyncMock()

        with patch.object(tasks, "create_http_client", return_value=http_client), \
                patch.object(tasks, "create_supabase_client", return_value=None):
            with pytest.raises(NoAccountsError):
                await tasks.pull_data_from_hubspot()

        http_client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_runs_orchestrator_with_given_dependencies(self, sink):
        http_client = MagicMock(spec=httpx.AsyncClient)
        http_client.aclose = AsyncMock()
        summary = AccountSyncSummary(account_id="1", status="success")

        with patch.object(tasks, "HubSpotSyncOrchestrator") as orchestrator_cls:
            orchestrator_cls.return_value.run = AsyncMock(return_value=[summary])

            result = await tasks.pull_data_from_hubspot(http_client=http_client, supabase=MagicMock(), sink=sink)

        assert result == [summary]
        assert orchestrator_cls.call_args.kwargs["queue"].sink is sink
        http_client.aclose.assert_not_awaited()
