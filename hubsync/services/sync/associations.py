"""
Contact -> company association resolution
One batch association read per page of contacts, never one call per contact
"""
import logging
from typing import Dict, Sequence

from hubsync.services.sync.providers.hubspot import HubSpotClient

logger = logging.getLogger(__name__)


async def resolve_company_for_contacts(
    client: HubSpotClient,
    access_token: str,
    contact_ids: Sequence[str]
) -> Dict[str, str]:
    """
    Map contact id -> associated company id for a page of contacts.

    Contacts without an associated company are absent from the result; the
    first associated company wins when there are several.
    """
    if not contact_ids:
        return {}

    results = await client.batch_read_associations("CONTACTS", "COMPANIES", contact_ids, access_token=access_token)

    associations: Dict[str, str] = {}
    for association in results:
        source = association.get("from") or {}
        targets = association.get("to") or []
        if not source.get("id") or not targets or not targets[0].get("id"):
            continue
        associations[str(source["id"])] = str(targets[0]["id"])

    logger.debug(f"Resolved companies for {len(associations)}/{len(contact_ids)} contacts")
    return associations
