"""
HubSpot CRM API client
Search, list, lookup, association and OAuth token calls over httpx

Transport retries (429 / 5xx / connection errors) are handled here with a
bounded budget; callers only ever see CRMApiError once that budget is spent.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from hubsync.core.circuit_breakers import hubspot_retrying
from hubsync.core.config import settings
from hubsync.core.exceptions import CRMApiError, MalformedResponseError

logger = logging.getLogger(__name__)


class HubSpotClient:
    """
    Thin async client for the HubSpot v3 CRM API.

    The access token is passed per call (owned by the account's TokenManager),
    so one client can serve accounts sequentially without shared token state.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        min_wait: float = 1.0,
        max_wait: float = 30.0
    ):
        self.http_client = http_client
        self.base_url = (base_url or settings.hubspot_api_base_url).rstrip("/")
        self.max_retries = max_retries or settings.hubspot_max_retries
        self.min_wait = min_wait
        self.max_wait = max_wait

    # ============================================================================
    # TRANSPORT
    # ============================================================================

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        access_token: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Send one request with retries and return the decoded JSON envelope.

        Raises:
            CRMApiError: HTTP error or connection failure after retries
            MalformedResponseError: body is empty, not JSON, or not an object
        """
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}

        try:
            async for attempt in hubspot_retrying(self.max_retries, self.min_wait, self.max_wait):
                with attempt:
                    response = await self.http_client.request(method, url, headers=headers, **kwargs)
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"❌ HubSpot API error: {e.response.status_code} - {e.response.text[:500]}",
                extra={"operation": operation}
            )
            raise CRMApiError(
                f"HubSpot {operation} failed with status {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except httpx.TransportError as e:
            logger.error(f"❌ HubSpot connection error: {e}", extra={"operation": operation})
            raise CRMApiError(f"HubSpot {operation} failed: {e}") from e

        if not response.content:
            raise MalformedResponseError(f"Empty response from HubSpot ({operation})")
        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON from HubSpot ({operation}): {e}") from e

        if not isinstance(payload, dict) or not payload:
            raise MalformedResponseError(f"Empty response envelope from HubSpot ({operation})")
        return payload

    # ============================================================================
    # CRM OBJECTS
    # ============================================================================

    async def search(
        self,
        object_type: str,
        access_token: str,
        filter_groups: List[Dict[str, Any]],
        sorts: List[Dict[str, str]],
        properties: Sequence[str],
        limit: int = 100,
        after: Optional[Union[int, str]] = None
    ) -> Dict[str, Any]:
        """
        POST /crm/v3/objects/{object_type}/search

        Returns:
            Envelope with 'results' and optional 'paging.next.after'
        """
        body: Dict[str, Any] = {
            "filterGroups": filter_groups,
            "sorts": sorts,
            "properties": list(properties),
            "limit": limit,
        }
        if after is not None:
            body["after"] = str(after)

        return await self._request(
            "POST",
            f"/crm/v3/objects/{object_type}/search",
            operation=f"search {object_type}",
            access_token=access_token,
            json=body
        )

    async def get_page(
        self,
        object_type: str,
        access_token: str,
        properties: Sequence[str],
        limit: int = 100,
        after: Optional[Union[int, str]] = None,
        associations: Sequence[str] = ()
    ) -> Dict[str, Any]:
        """
        GET /crm/v3/objects/{object_type} (list endpoint, returns associations)
        """
        params: Dict[str, Any] = {"limit": limit, "properties": ",".join(properties)}
        if after is not None:
            params["after"] = str(after)
        if associations:
            params["associations"] = ",".join(associations)

        return await self._request(
            "GET",
            f"/crm/v3/objects/{object_type}",
            operation=f"list {object_type}",
            access_token=access_token,
            params=params
        )

    async def get_by_id(
        self,
        object_type: str,
        object_id: str,
        access_token: str,
        properties: Sequence[str] = ()
    ) -> Dict[str, Any]:
        """GET /crm/v3/objects/{object_type}/{object_id}"""
        params = {"properties": ",".join(properties)} if properties else None
        return await self._request(
            "GET",
            f"/crm/v3/objects/{object_type}/{object_id}",
            operation=f"get {object_type}",
            access_token=access_token,
            params=params
        )

    async def batch_read_associations(
        self,
        from_type: str,
        to_type: str,
        ids: Sequence[str],
        access_token: str
    ) -> List[Dict[str, Any]]:
        """
        POST /crm/v3/associations/{from_type}/{to_type}/batch/read

        Returns:
            List of {"from": {"id": ...}, "to": [{"id": ...}, ...]}
        """
        payload = await self._request(
            "POST",
            f"/crm/v3/associations/{from_type}/{to_type}/batch/read",
            operation=f"associations {from_type}->{to_type}",
            access_token=access_token,
            json={"inputs": [{"id": str(object_id)} for object_id in ids]}
        )
        return payload.get("results") or []

    # ============================================================================
    # OAUTH
    # ============================================================================

    async def exchange_refresh_token(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        refresh_token: str
    ) -> Dict[str, Any]:
        """
        POST /oauth/v1/token (grant_type=refresh_token)

        Returns:
            {"access_token": ..., "refresh_token": ..., "expires_in": seconds}
        """
        return await self._request(
            "POST",
            "/oauth/v1/token",
            operation="refresh access token",
            data={
                "grant_type": "refresh_token",
                "client_id": client_id or "",
                "client_secret": client_secret or "",
                "refresh_token": refresh_token,
            }
        )
