"""
Tests for incremental cursor pagination and the search offset cap workaround.
"""
import pytest

from hubsync.core.datetime_utils import to_epoch_ms
from hubsync.core.exceptions import MalformedResponseError, PaginationStalledError
from hubsync.models.schemas import EntityType
from hubsync.services.sync.pagination import (
    EntityConfig,
    build_filter_groups,
    iter_pages,
    parse_next_cursor,
)
from tests.factories import contact_associations, hubspot_record, search_page, ts

COMPANIES = EntityConfig(entity=EntityType.COMPANIES, object_type="companies", properties=("name", "domain"))
MEETINGS = EntityConfig(
    entity=EntityType.MEETINGS,
    object_type="meetings",
    properties=("hs_meeting_title",),
    modified_property=None,
    associations=("contacts",),
)


async def collect(pages):
    return [page async for page in pages]


def ids(pages):
    return [record["id"] for page in pages for record in page]


class TestFilterGroups:

    def test_first_pull_has_only_upper_bound(self):
        groups = build_filter_groups(None, ts(60))

        assert groups == [{"filters": [
            {"propertyName": "hs_lastmodifieddate", "operator": "LTE", "value": str(to_epoch_ms(ts(60)))}
        ]}]

    def test_incremental_pull_is_bounded_both_ways(self):
        filters = build_filter_groups(ts(0), ts(60), "lastmodifieddate")[0]["filters"]

        assert [f["operator"] for f in filters] == ["GTE", "LTE"]
        assert filters[0]["value"] == str(to_epoch_ms(ts(0)))
        assert {f["propertyName"] for f in filters} == {"lastmodifieddate"}


class TestParseNextCursor:

    def test_numeric_cursor_becomes_int(self):
        assert parse_next_cursor(search_page([], after="200")) == 200

    def test_opaque_cursor_is_kept(self):
        assert parse_next_cursor(search_page([], after="NTI1Cg%3D%3D")) == "NTI1Cg%3D%3D"

    def test_missing_paging_ends_iteration(self):
        assert parse_next_cursor({"results": []}) is None


class TestIterPages:

    @pytest.mark.asyncio
    async def test_follows_cursor_until_exhausted(self, client, tokens, account):
        client.search.side_effect = [
            search_page([hubspot_record(1, ts(1)), hubspot_record(2, ts(2))], after=2),
            search_page([hubspot_record(3, ts(3))]),
        ]

        pages = await collect(iter_pages(client, tokens, account, COMPANIES, None, ts(60), page_size=2))

        assert ids(pages) == ["1", "2", "3"]
        assert client.search.await_args_list[0].kwargs["after"] is None
        assert client.search.await_args_list[1].kwargs["after"] == 2
        assert client.search.await_args_list[0].kwargs["sorts"] == [
            {"propertyName": "hs_lastmodifieddate", "direction": "ASCENDING"}
        ]

    @pytest.mark.asyncio
    async def test_checks_token_before_every_page(self, client, tokens, account):
        client.search.side_effect = [
            search_page([hubspot_record(1, ts(1))], after=1),
            search_page([hubspot_record(2, ts(2))], after=2),
            search_page([]),
        ]

        await collect(iter_pages(client, tokens, account, COMPANIES, None, ts(60)))

        assert tokens.ensure_valid_token.await_count == 3
        assert client.search.await_args_list[0].kwargs["access_token"] == "access-1"

    @pytest.mark.asyncio
    async def test_never_yields_records_at_or_before_watermark(self, client, tokens, account):
        watermark = ts(10)
        client.search.return_value = search_page([
            hubspot_record(1, ts(5)),
            hubspot_record(2, watermark),
            hubspot_record(3, ts(11)),
        ])

        pages = await collect(iter_pages(client, tokens, account, COMPANIES, watermark, ts(60)))

        assert ids(pages) == ["3"]

    @pytest.mark.asyncio
    async def test_records_newer_than_window_end_are_left_for_next_run(self, client, tokens, account):
        client.search.return_value = search_page([hubspot_record(1, ts(10)), hubspot_record(2, ts(61))])

        pages = await collect(iter_pages(client, tokens, account, COMPANIES, None, ts(60)))

        assert ids(pages) == ["1"]

    @pytest.mark.asyncio
    async def test_page_with_nothing_new_is_not_yielded(self, client, tokens, account):
        client.search.side_effect = [
            search_page([hubspot_record(1, ts(1))], after=1),
            search_page([hubspot_record(2, ts(20))]),
        ]

        pages = await collect(iter_pages(client, tokens, account, COMPANIES, ts(10), ts(60)))

        assert pages == [[hubspot_record(2, ts(20))]]

    @pytest.mark.asyncio
    async def test_offset_cap_rewindows_and_continues(self, client, tokens, account):
        """Reaching the cap restarts the window at the last modified time, without losing or repeating records."""
        client.search.side_effect = [
            search_page([hubspot_record(1, ts(1)), hubspot_record(2, ts(2))], after=2),
            search_page([hubspot_record(3, ts(3)), hubspot_record(4, ts(3))], after=4),
            # New window starts at ts(3) with GTE, so 3 and 4 come back
            search_page([hubspot_record(3, ts(3)), hubspot_record(4, ts(3)), hubspot_record(5, ts(4))]),
        ]

        pages = await collect(
            iter_pages(client, tokens, account, COMPANIES, None, ts(60), page_size=2, max_offset=4)
        )

        assert ids(pages) == ["1", "2", "3", "4", "5"]
        third_call = client.search.await_args_list[2].kwargs
        assert third_call["after"] is None
        lower = third_call["filter_groups"][0]["filters"][0]
        assert lower["operator"] == "GTE"
        assert lower["value"] == str(to_epoch_ms(ts(3)))

    @pytest.mark.asyncio
    async def test_offset_cap_without_progress_raises(self, client, tokens, account):
        watermark = ts(1)
        client.search.return_value = search_page(
            [hubspot_record(1, watermark), hubspot_record(2, watermark)],
            after=9900
        )

        with pytest.raises(PaginationStalledError):
            await collect(iter_pages(client, tokens, account, COMPANIES, watermark, ts(60)))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("envelope", [None, {}, []])
    async def test_empty_envelope_aborts(self, client, tokens, account, envelope):
        client.search.return_value = envelope

        with pytest.raises(MalformedResponseError, match="Failed to fetch companies"):
            await collect(iter_pages(client, tokens, account, COMPANIES, None, ts(60)))

    @pytest.mark.asyncio
    async def test_list_mode_requests_associations(self, client, tokens, account):
        client.get_page.side_effect = [
            search_page([hubspot_record(1, ts(1), associations=contact_associations(7))], after="opaque"),
            search_page([hubspot_record(2, ts(2))]),
        ]

        pages = await collect(iter_pages(client, tokens, account, MEETINGS, None, ts(60)))

        assert ids(pages) == ["1", "2"]
        client.search.assert_not_awaited()
        first, second = client.get_page.await_args_list
        assert first.kwargs["associations"] == ("contacts",)
        assert second.kwargs["after"] == "opaque"
