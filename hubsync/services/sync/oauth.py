"""
HubSpot OAuth token lifecycle
Exchanges refresh tokens for access tokens and tracks their expiry per account
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from hubsync.core.config import settings
from hubsync.core.datetime_utils import utc_now
from hubsync.core.exceptions import HubSyncError, TokenRefreshError
from hubsync.models.schemas import Account
from hubsync.services.sync.providers.hubspot import HubSpotClient

logger = logging.getLogger(__name__)


class TokenManager:
    """
    Owns the access token and expiry for one account sync session.

    One instance per account: the orchestrator builds a fresh manager for
    every account, so tokens never leak across accounts. The three concurrent
    extractions share it; the lock makes them wait on a single refresh
    instead of each exchanging the refresh token. A failed refresh is
    remembered: later callers get the same error without another exchange.
    """

    def __init__(
        self,
        client: HubSpotClient,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.client = client
        self.client_id = client_id if client_id is not None else settings.hubspot_client_id
        self.client_secret = client_secret if client_secret is not None else settings.hubspot_client_secret
        self._clock = clock
        self._lock = asyncio.Lock()
        self.access_token: Optional[str] = None
        self.expires_at: Optional[datetime] = None
        self._failure: Optional[TokenRefreshError] = None

    def is_expired(self) -> bool:
        if self.access_token is None or self.expires_at is None:
            return True
        return self._clock() > self.expires_at

    async def ensure_valid_token(self, account: Account) -> str:
        """
        Return a usable access token, refreshing it first if it has expired.

        Raises:
            TokenRefreshError: if the refresh token exchange fails, now or
                earlier in this session (a failed refresh is never retried)
        """
        if self._failure is not None:
            raise self._failure
        if not self.is_expired():
            return self.access_token

        async with self._lock:
            # Another task may have refreshed (or failed to) while we waited
            if self._failure is not None:
                raise self._failure
            if not self.is_expired():
                return self.access_token
            return await self._refresh(account)

    async def refresh(self, account: Account) -> str:
        """Unconditionally exchange the refresh token (used at account start)."""
        async with self._lock:
            if self._failure is not None:
                raise self._failure
            return await self._refresh(account)

    async def _refresh(self, account: Account) -> str:
        try:
            return await self._exchange(account)
        except TokenRefreshError as e:
            self._failure = e
            raise

    async def _exchange(self, account: Account) -> str:
        try:
            body = await self.client.exchange_refresh_token(
                self.client_id,
                self.client_secret,
                account.refresh_token
            )
        except HubSyncError as e:
            logger.error(
                f"❌ Failed to refresh access token for account {account.id}: {e}",
                extra={"operation": "refreshAccessToken"}
            )
            raise TokenRefreshError(f"Token refresh failed for account {account.id}") from e

        access_token = body.get("access_token")
        expires_in = body.get("expires_in")
        if not access_token or expires_in is None:
            raise TokenRefreshError(f"Token response for account {account.id} is missing access_token/expires_in")

        try:
            lifetime = timedelta(seconds=int(expires_in))
        except (TypeError, ValueError) as e:
            raise TokenRefreshError(f"Invalid expires_in for account {account.id}: {expires_in!r}") from e

        self.access_token = access_token
        self.expires_at = self._clock() + lifetime

        rotated = body.get("refresh_token")
        if rotated and rotated != account.refresh_token:
            account.refresh_token = rotated
            logger.info(f"🔁 Refresh token rotated for account {account.id}")

        logger.info(f"✅ Access token refreshed for account {account.id} (expires {self.expires_at.isoformat()})")
        return access_token
