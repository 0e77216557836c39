"""
Per-pass contact lookup cache for meeting attendees
"""
import logging
from typing import Any, Dict, List, Sequence

from hubsync.models.schemas import Account
from hubsync.services.sync.oauth import TokenManager
from hubsync.services.sync.providers.hubspot import HubSpotClient

logger = logging.getLogger(__name__)

CONTACT_PROPERTIES = ("email", "firstname", "lastname")


class ContactCache:
    """
    Memoizes contact records by id for the lifetime of one meetings extraction.

    Meetings share attendees, so each contact is fetched at most once per
    pass. The extraction creates the cache and drops it when it returns;
    there is no eviction.
    """

    def __init__(self, client: HubSpotClient, tokens: TokenManager, account: Account):
        self.client = client
        self.tokens = tokens
        self.account = account
        self._contacts: Dict[str, Dict[str, Any]] = {}
        self.lookups = 0

    def __len__(self) -> int:
        return len(self._contacts)

    def __contains__(self, contact_id: object) -> bool:
        return str(contact_id) in self._contacts

    async def get_contacts(self, contact_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Return contact records in the order of contact_ids, fetching misses."""
        contacts = []
        for contact_id in contact_ids:
            key = str(contact_id)
            if key not in self._contacts:
                access_token = await self.tokens.ensure_valid_token(self.account)
                self._contacts[key] = await self.client.get_by_id(
                    "contacts",
                    key,
                    access_token=access_token,
                    properties=CONTACT_PROPERTIES
                )
                self.lookups += 1
            contacts.append(self._contacts[key])
        return contacts
