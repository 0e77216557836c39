"""
Tests for the HubSpot HTTP client using httpx.MockTransport.
"""
import json

import httpx
import pytest

from hubsync.core.exceptions import CRMApiError, MalformedResponseError
from hubsync.services.sync.providers.hubspot import HubSpotClient


def make_client(handler, max_retries=3):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HubSpotClient(http_client, base_url="https://api.test", max_retries=max_retries, min_wait=0, max_wait=0)


class TestRequests:

    @pytest.mark.asyncio
    async def test_search_posts_filters_and_bearer_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"total": 0, "results": []})

        client = make_client(handler)
        await client.search(
            "companies",
            access_token="access-1",
            filter_groups=[{"filters": []}],
            sorts=[{"propertyName": "hs_lastmodifieddate", "direction": "ASCENDING"}],
            properties=("name", "domain"),
            limit=100,
            after=200
        )

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/crm/v3/objects/companies/search"
        assert request.headers["Authorization"] == "Bearer access-1"
        body = json.loads(request.content)
        assert body["after"] == "200"
        assert body["properties"] == ["name", "domain"]
        assert body["limit"] == 100

    @pytest.mark.asyncio
    async def test_list_page_sends_associations(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"results": []})

        client = make_client(handler)
        await client.get_page("meetings", access_token="t", properties=("hs_meeting_title",), associations=("contacts",))

        params = seen[0].url.params
        assert params["associations"] == "contacts"
        assert params["properties"] == "hs_meeting_title"
        assert "after" not in params

    @pytest.mark.asyncio
    async def test_batch_associations_returns_results(self):
        def handler(request):
            assert json.loads(request.content) == {"inputs": [{"id": "1"}, {"id": "2"}]}
            return httpx.Response(200, json={"status": "COMPLETE", "results": [{"from": {"id": "1"}, "to": [{"id": "9"}]}]})

        client = make_client(handler)

        results = await client.batch_read_associations("CONTACTS", "COMPANIES", ["1", "2"], access_token="t")

        assert results == [{"from": {"id": "1"}, "to": [{"id": "9"}]}]

    @pytest.mark.asyncio
    async def test_token_exchange_is_form_encoded(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"access_token": "a", "refresh_token": "r", "expires_in": 1800})

        client = make_client(handler)
        body = await client.exchange_refresh_token("cid", "secret", "refresh-1")

        assert body["access_token"] == "a"
        assert seen[0].url.path == "/oauth/v1/token"
        assert b"grant_type=refresh_token" in seen[0].content
        assert "Authorization" not in seen[0].headers


class TestRetries:

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(502)
            return httpx.Response(200, json={"results": []})

        client = make_client(handler)

        assert await client.get_page("companies", access_token="t", properties=()) == {"results": []}
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "0"})
            return httpx.Response(200, json={"results": []})

        client = make_client(handler)
        await client.get_page("contacts", access_token="t", properties=())

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_retry_budget_is_bounded(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        client = make_client(handler, max_retries=3)

        with pytest.raises(CRMApiError) as exc_info:
            await client.get_page("contacts", access_token="t", properties=())
        assert exc_info.value.status_code == 503
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={"status": "error", "message": "bad filter"})

        client = make_client(handler)

        with pytest.raises(CRMApiError) as exc_info:
            await client.get_page("contacts", access_token="t", properties=())
        assert exc_info.value.status_code == 400
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_connection_error_becomes_crm_api_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, max_retries=2)

        with pytest.raises(CRMApiError):
            await client.get_by_id("contacts", "7", access_token="t")


class TestMalformedResponses:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, content=b""),
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(200, json={}),
        httpx.Response(200, json=[1, 2]),
    ])
    async def test_unusable_body_raises(self, response):
        client = make_client(lambda request: response)

        with pytest.raises(MalformedResponseError):
            await client.get_page("companies", access_token="t", properties=())
