"""
Incremental cursor pagination
Pulls every record modified since a watermark, page by page

HubSpot's search endpoint refuses offsets past 10,000 results. When the next
cursor reaches the cap we drop it and restart the time window at the last
record's modified time, trading offset pagination for time-window pagination.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple, Union

from hubsync.core.config import settings
from hubsync.core.datetime_utils import parse_hubspot_datetime, to_epoch_ms
from hubsync.core.exceptions import MalformedResponseError, PaginationStalledError
from hubsync.models.schemas import Account, EntityType
from hubsync.services.sync.oauth import TokenManager
from hubsync.services.sync.providers.hubspot import HubSpotClient

logger = logging.getLogger(__name__)

Cursor = Union[int, str]


@dataclass(frozen=True)
class EntityConfig:
    """
    How to page through one HubSpot object type.

    modified_property set: search endpoint with a modified-time window.
    modified_property None: list endpoint (returns associations, no window).
    """
    entity: EntityType
    object_type: str
    properties: Tuple[str, ...]
    modified_property: Optional[str] = "hs_lastmodifieddate"
    associations: Tuple[str, ...] = ()

    @property
    def searchable(self) -> bool:
        return self.modified_property is not None


@dataclass
class PageCursor:
    after: Optional[Cursor] = None
    last_modified_date: Optional[datetime] = None


@dataclass
class _WindowTail:
    """Ids of the records sharing the newest modified time seen so far."""
    modified_at: Optional[datetime] = None
    ids: Set[str] = field(default_factory=set)

    def observe(self, record_id: str, modified_at: Optional[datetime]) -> None:
        if modified_at != self.modified_at:
            self.modified_at = modified_at
            self.ids = set()
        self.ids.add(record_id)


def build_filter_groups(
    lower_bound: Optional[datetime],
    now: datetime,
    property_name: str = "hs_lastmodifieddate"
) -> List[Dict[str, Any]]:
    """
    Modified-time window [lower_bound, now] as HubSpot search filter groups.
    Without a lower bound (first pull) only the upper bound applies.
    """
    filters = []
    if lower_bound is not None:
        filters.append({"propertyName": property_name, "operator": "GTE", "value": str(to_epoch_ms(lower_bound))})
    filters.append({"propertyName": property_name, "operator": "LTE", "value": str(to_epoch_ms(now))})
    return [{"filters": filters}]


def record_modified_at(record: Dict[str, Any], config: Optional[EntityConfig] = None) -> Optional[datetime]:
    modified = parse_hubspot_datetime(record.get("updatedAt"))
    if modified is None and config is not None and config.modified_property:
        modified = parse_hubspot_datetime((record.get("properties") or {}).get(config.modified_property))
    return modified


def parse_next_cursor(result: Dict[str, Any]) -> Optional[Cursor]:
    after = ((result.get("paging") or {}).get("next") or {}).get("after")
    if after is None or after == "":
        return None
    try:
        return int(after)
    except (TypeError, ValueError):
        return str(after)


async def iter_pages(
    client: HubSpotClient,
    tokens: TokenManager,
    account: Account,
    config: EntityConfig,
    last_watermark: Optional[datetime],
    now: datetime,
    page_size: Optional[int] = None,
    max_offset: Optional[int] = None
) -> AsyncIterator[List[Dict[str, Any]]]:
    """
    Yield pages of raw records modified in (last_watermark, now].

    Pages whose records all fall outside the window are not yielded.
    Each record is yielded at most once per call. Not resumable mid-page:
    restart by calling again with a new watermark.

    Raises:
        MalformedResponseError: empty / malformed response envelope
        PaginationStalledError: re-windowing cannot advance the window
        TokenRefreshError, CRMApiError: propagated from the token manager / client
    """
    page_size = page_size or settings.page_size
    max_offset = max_offset if max_offset is not None else settings.max_search_offset

    cursor = PageCursor()
    tail = _WindowTail()
    boundary_ids: Set[str] = set()
    pages = 0

    while True:
        # Expiry can happen mid-run, so check before every page
        access_token = await tokens.ensure_valid_token(account)

        if config.searchable:
            lower_bound = cursor.last_modified_date or last_watermark
            result = await client.search(
                config.object_type,
                access_token=access_token,
                filter_groups=build_filter_groups(lower_bound, now, config.modified_property),
                sorts=[{"propertyName": config.modified_property, "direction": "ASCENDING"}],
                properties=config.properties,
                limit=page_size,
                after=cursor.after
            )
        else:
            lower_bound = None
            result = await client.get_page(
                config.object_type,
                access_token=access_token,
                properties=config.properties,
                limit=page_size,
                after=cursor.after,
                associations=config.associations
            )

        if not result or not isinstance(result, dict):
            raise MalformedResponseError(f"Failed to fetch {config.entity.value}. Aborting.")

        records = result.get("results") or []
        if not records:
            break

        pages += 1
        page = []
        for record in records:
            record_id = str(record.get("id"))
            modified_at = record_modified_at(record, config)
            tail.observe(record_id, modified_at)

            if record_id in boundary_ids:
                continue
            if modified_at is not None:
                if last_watermark is not None and modified_at <= last_watermark:
                    continue
                # Belongs to the next run's window
                if modified_at > now:
                    continue
            page.append(record)

        logger.debug(
            f"{config.entity.value}: page {pages} with {len(records)} records ({len(page)} new), after={cursor.after}"
        )
        if page:
            yield page

        next_after = parse_next_cursor(result)
        if next_after is None:
            break

        if config.searchable and isinstance(next_after, int) and next_after >= max_offset:
            new_lower_bound = record_modified_at(records[-1], config)
            if new_lower_bound is None or (lower_bound is not None and new_lower_bound <= lower_bound):
                raise PaginationStalledError(
                    f"{config.entity.value}: search offset cap reached without advancing past {lower_bound}"
                )
            logger.info(
                f"🔄 {config.entity.value}: offset cap reached at after={next_after}, re-windowing from {new_lower_bound.isoformat()}"
            )
            # Records at the new lower bound were already seen; GTE would return them again
            boundary_ids = set(tail.ids) if tail.modified_at == new_lower_bound else set()
            cursor = PageCursor(after=None, last_modified_date=new_lower_bound)
        else:
            cursor = PageCursor(after=next_after, last_modified_date=cursor.last_modified_date)
