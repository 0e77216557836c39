"""
HubSpot sync engine
Pulls companies, contacts and meetings per account and queues them as actions

Flow per account (accounts run one after another):
1. Refresh the access token (failure skips the account)
2. Extract companies, contacts and meetings concurrently; a failing entity
   yields zero actions without affecting the other two
3. Enqueue every action and drain the queue into the sink
4. Advance the watermark of each entity whose extraction completed and
   whose actions all reached the sink
5. Persist the account (watermarks + rotated refresh token)
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from hubsync.core.config import settings
from hubsync.core.datetime_utils import utc_now
from hubsync.core.exceptions import (
    CRMApiError,
    DeliveryError,
    MalformedResponseError,
    NoAccountsError,
    TokenRefreshError,
)
from hubsync.core.logging import log_finish, log_start
from hubsync.models.schemas import Account, AccountSyncSummary, EntityType, ExtractionResult
from hubsync.services.sync.associations import resolve_company_for_contacts
from hubsync.services.sync.contact_cache import ContactCache
from hubsync.services.sync.database import AccountStore
from hubsync.services.sync.normalizer import (
    build_attendees,
    meeting_contact_ids,
    normalize_company,
    normalize_contact,
    normalize_meeting,
)
from hubsync.services.sync.oauth import TokenManager
from hubsync.services.sync.pagination import EntityConfig, iter_pages
from hubsync.services.sync.providers.hubspot import HubSpotClient
from hubsync.services.sync.queue import ActionQueue

logger = logging.getLogger(__name__)


# ============================================================================
# ENTITY CONFIGURATION
# ============================================================================

COMPANIES = EntityConfig(
    entity=EntityType.COMPANIES,
    object_type="companies",
    properties=(
        "name",
        "domain",
        "country",
        "industry",
        "description",
        "annualrevenue",
        "numberofemployees",
        "hs_lead_status",
    ),
    modified_property="hs_lastmodifieddate",
)

CONTACTS = EntityConfig(
    entity=EntityType.CONTACTS,
    object_type="contacts",
    properties=(
        "firstname",
        "lastname",
        "jobtitle",
        "email",
        "hubspotscore",
        "hs_lead_status",
        "hs_analytics_source",
        "hs_latest_source",
    ),
    modified_property="lastmodifieddate",
)

# Search does not return associations, so meetings go through the list endpoint
MEETINGS = EntityConfig(
    entity=EntityType.MEETINGS,
    object_type="meetings",
    properties=(
        "hs_timestamp",
        "hubspot_owner_id",
        "hs_meeting_title",
        "hs_meeting_body",
        "hs_internal_meeting_notes",
        "hs_meeting_external_url",
        "hs_meeting_location",
        "hs_meeting_start_time",
        "hs_meeting_end_time",
        "hs_meeting_outcome",
    ),
    modified_property=None,
    associations=("contacts",),
)


# ============================================================================
# ENTITY EXTRACTIONS
# ============================================================================

async def process_companies(
    client: HubSpotClient,
    tokens: TokenManager,
    account: Account,
    clock: Callable[[], datetime] = utc_now
) -> ExtractionResult:
    """Get recently modified companies, 100 per page."""
    watermark = account.get_watermark(EntityType.COMPANIES)
    now = clock()
    actions = []

    start = log_start("companies")
    async for page in iter_pages(client, tokens, account, COMPANIES, watermark, now):
        for company in page:
            action = normalize_company(company, watermark)
            if action:
                actions.append(action)
    log_finish("companies", start)

    return ExtractionResult(entity=EntityType.COMPANIES, actions=actions, pulled_at=now, completed=True)


async def process_contacts(
    client: HubSpotClient,
    tokens: TokenManager,
    account: Account,
    clock: Callable[[], datetime] = utc_now
) -> ExtractionResult:
    """Get recently modified contacts, 100 per page, with their associated company."""
    watermark = account.get_watermark(EntityType.CONTACTS)
    now = clock()
    actions = []

    start = log_start("contacts")
    async for page in iter_pages(client, tokens, account, CONTACTS, watermark, now):
        access_token = await tokens.ensure_valid_token(account)
        company_ids = await resolve_company_for_contacts(
            client,
            access_token,
            [str(contact.get("id")) for contact in page]
        )

        for contact in page:
            action = normalize_contact(contact, watermark, company_id=company_ids.get(str(contact.get("id"))))
            if action:
                actions.append(action)
    log_finish("contacts", start)

    return ExtractionResult(entity=EntityType.CONTACTS, actions=actions, pulled_at=now, completed=True)


async def process_meetings(
    client: HubSpotClient,
    tokens: TokenManager,
    account: Account,
    clock: Callable[[], datetime] = utc_now
) -> ExtractionResult:
    """
    Get recently modified meetings with their attendees.

    A meeting whose attendee lookup fails is logged and skipped; the rest of
    the pass continues.
    """
    watermark = account.get_watermark(EntityType.MEETINGS)
    now = clock()
    actions = []
    contact_cache = ContactCache(client, tokens, account)

    start = log_start("meetings")
    async for page in iter_pages(client, tokens, account, MEETINGS, watermark, now):
        for meeting in page:
            if not meeting.get("properties"):
                continue

            attendees = []
            contact_ids = meeting_contact_ids(meeting)
            if contact_ids:
                try:
                    contacts = await contact_cache.get_contacts(contact_ids)
                except (CRMApiError, MalformedResponseError) as e:
                    logger.error(
                        f"Skipping meeting {meeting.get('id')}: attendee lookup failed: {e}",
                        extra={"operation": "processMeetings"}
                    )
                    continue
                attendees = build_attendees(contacts)

            action = normalize_meeting(meeting, watermark, attendees=attendees)
            if action:
                actions.append(action)
    log_finish("meetings", start)
    logger.debug(f"meetings: {contact_cache.lookups} contact lookups, {len(contact_cache)} cached")

    return ExtractionResult(entity=EntityType.MEETINGS, actions=actions, pulled_at=now, completed=True)


# ============================================================================
# ORCHESTRATOR
# ============================================================================

Extraction = Callable[[HubSpotClient, TokenManager, Account, Callable[[], datetime]], Awaitable[ExtractionResult]]

EXTRACTIONS = (
    (EntityType.CONTACTS, process_contacts),
    (EntityType.COMPANIES, process_companies),
    (EntityType.MEETINGS, process_meetings),
)


class HubSpotSyncOrchestrator:
    """
    Runs every account through the three entity extractions and the action queue.
    """

    def __init__(
        self,
        client: HubSpotClient,
        account_store: AccountStore,
        queue: ActionQueue,
        token_manager_factory: Optional[Callable[[HubSpotClient], TokenManager]] = None,
        clock: Callable[[], datetime] = utc_now,
        persist_accounts: Optional[bool] = None,
        extractions: Sequence[Tuple[EntityType, Extraction]] = EXTRACTIONS
    ):
        self.client = client
        self.account_store = account_store
        self.queue = queue
        self.token_manager_factory = token_manager_factory or TokenManager
        self.clock = clock
        self.persist_accounts = settings.persist_accounts if persist_accounts is None else persist_accounts
        self.extractions = extractions

    async def run(self) -> List[AccountSyncSummary]:
        """
        Sync every current account, strictly one at a time.

        Raises:
            NoAccountsError: nothing to sync
        """
        start = log_start("pulling data from HubSpot")

        accounts = await self.account_store.find_current_accounts()
        if not accounts:
            raise NoAccountsError("No HubSpot accounts found")

        summaries = []
        for account in accounts:
            summaries.append(await self.sync_account(account))

        # Anything left behind by a failed delivery gets one more attempt
        if self.queue.pending_count:
            try:
                await self.queue.drain()
            except DeliveryError as e:
                logger.error(
                    f"❌ Final drain failed, dropping {self.queue.pending_count} undelivered actions: {e}",
                    extra={"operation": "drainQueue"}
                )

        log_finish("pulling data from HubSpot", start)
        return summaries

    async def sync_account(self, account: Account) -> AccountSyncSummary:
        logger.info(f"🚀 start processing account {account.id}")
        tokens = self.token_manager_factory(self.client)

        try:
            await tokens.refresh(account)
        except TokenRefreshError as e:
            logger.error(f"❌ Skipping account {account.id}: {e}", extra={"operation": "refreshAccessToken"})
            await self._persist(account)
            return AccountSyncSummary(account_id=account.id, status="skipped", errors=[str(e)])

        results: List[ExtractionResult] = await asyncio.gather(*[
            self._run_extraction(entity, extraction, tokens, account)
            for entity, extraction in self.extractions
        ])

        all_actions = [action for result in results for action in result.actions]
        errors = [f"{result.entity.value}: {result.error}" for result in results if not result.completed]

        try:
            await self.queue.enqueue_many(all_actions)
            logger.info(f"processed all data for account {account.id}")
            await self.queue.drain()
            logger.info("drain queue")
        except DeliveryError as e:
            logger.error(f"❌ {e}", extra={"operation": "drainQueue"})
            errors.append(f"delivery: {e}")

        # Undelivered actions must be extracted again next run
        held_back = {name.label for name in self.queue.pending_action_names()}
        for result in results:
            if not result.completed:
                continue
            if result.entity.label in held_back:
                logger.warning(
                    f"⚠️  Keeping {result.entity.value} watermark for account {account.id}: actions still undelivered",
                    extra={"operation": "saveAccount"}
                )
                continue
            account.set_watermark(result.entity, result.pulled_at)

        await self._persist(account)

        counts = {result.entity.value: len(result.actions) for result in results}
        completed = sum(1 for result in results if result.completed)
        if completed == 0:
            status = "failed"
        elif errors:
            status = "partial"
        else:
            status = "success"

        logger.info(
            f"finish processing account {account.id}. {len(all_actions)} actions stored: "
            f"{counts.get('contacts', 0)} contacts, {counts.get('companies', 0)} companies, "
            f"{counts.get('meetings', 0)} meetings."
        )

        return AccountSyncSummary(
            account_id=account.id,
            status=status,
            actions_enqueued=len(all_actions),
            counts=counts,
            errors=errors
        )

    async def _run_extraction(
        self,
        entity: EntityType,
        extraction: Extraction,
        tokens: TokenManager,
        account: Account
    ) -> ExtractionResult:
        operation = f"process{entity.value.capitalize()}"
        try:
            return await extraction(self.client, tokens, account, self.clock)
        except Exception as e:
            logger.error(f"❌ {entity.value} extraction failed for account {account.id}: {e}", extra={"operation": operation})
            return ExtractionResult(entity=entity, completed=False, error=str(e))

    async def _persist(self, account: Account) -> None:
        if not self.persist_accounts:
            return
        try:
            await self.account_store.persist(account)
        except Exception as e:
            logger.error(f"❌ Failed to save account {account.id}: {e}", extra={"operation": "saveAccount"})
