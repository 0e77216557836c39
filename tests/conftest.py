"""
Shared fixtures: mocked HubSpot client, token manager and in-memory sink / store
"""
from typing import List
from unittest.mock import AsyncMock, Mock

import pytest

from hubsync.models.schemas import Account, Action
from hubsync.services.sync.oauth import TokenManager
from hubsync.services.sync.providers.hubspot import HubSpotClient


class RecordingSink:
    """Keeps every delivered batch; fails the next `fail_times` deliveries."""

    def __init__(self, fail_times: int = 0):
        self.batches: List[List[Action]] = []
        self.fail_times = fail_times

    def deliver(self, actions: List[Action]) -> None:
        if self.fail_times:
            self.fail_times -= 1
            raise RuntimeError("sink unavailable")
        self.batches.append(list(actions))

    @property
    def delivered(self) -> List[Action]:
        return [action for batch in self.batches for action in batch]


class InMemoryAccountStore:
    def __init__(self, accounts: List[Account]):
        self.accounts = accounts
        self.persisted: List[Account] = []

    async def find_current_accounts(self) -> List[Account]:
        return self.accounts

    async def persist(self, account: Account) -> None:
        self.persisted.append(account.model_copy(deep=True))


@pytest.fixture
def account():
    return Account(id=1, refresh_token="refresh-1")


@pytest.fixture
def client():
    mock = Mock(spec=HubSpotClient)
    mock.search = AsyncMock()
    mock.get_page = AsyncMock()
    mock.get_by_id = AsyncMock()
    mock.batch_read_associations = AsyncMock(return_value=[])
    mock.exchange_refresh_token = AsyncMock(
        return_value={"access_token": "access-1", "refresh_token": "refresh-1", "expires_in": 1800}
    )
    return mock


@pytest.fixture
def tokens():
    manager = Mock(spec=TokenManager)
    manager.ensure_valid_token = AsyncMock(return_value="access-1")
    manager.refresh = AsyncMock(return_value="access-1")
    return manager


@pytest.fixture
def sink():
    return RecordingSink()
