"""
Account store
Loads HubSpot accounts with their watermarks and writes them back after sync
"""
import logging
from typing import List, Optional, Protocol

from pydantic import ValidationError
from supabase import Client

from hubsync.core.config import settings
from hubsync.models.schemas import Account

logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    async def find_current_accounts(self) -> List[Account]:
        ...

    async def persist(self, account: Account) -> None:
        ...


class SupabaseAccountStore:
    """
    Accounts table rows: {id, refresh_token, last_pulled_dates (json)}.
    last_pulled_dates holds ISO timestamps keyed by entity type.
    """

    def __init__(self, supabase: Client, table: Optional[str] = None):
        self.supabase = supabase
        self.table = table or settings.accounts_table

    async def find_current_accounts(self) -> List[Account]:
        result = self.supabase.table(self.table).select("id, refresh_token, last_pulled_dates").execute()

        accounts = []
        for row in result.data or []:
            try:
                accounts.append(Account.model_validate(row))
            except ValidationError as e:
                logger.error(f"❌ Skipping malformed account row {row.get('id')}: {e}")

        logger.info(f"Loaded {len(accounts)} HubSpot accounts from {self.table}")
        return accounts

    async def persist(self, account: Account) -> None:
        payload = {
            "refresh_token": account.refresh_token,
            "last_pulled_dates": account.last_pulled_dates.model_dump(mode="json"),
        }
        self.supabase.table(self.table).update(payload).eq("id", account.id).execute()
        logger.info(f"✅ Saved account {account.id} (watermarks: {payload['last_pulled_dates']})")
