"""
Action normalization
Turns raw HubSpot records into Created/Updated actions

Rules:
- created = no watermark yet, or createdAt > watermark captured at extraction start
- action date = createdAt when created, updatedAt otherwise
- company action dates are shifted back by a fixed skew (2s by default)
- None payload values are dropped, never emitted as null
- data-quality gaps (no email, no property bag) skip the record silently
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from hubsync.core.config import settings
from hubsync.core.datetime_utils import parse_hubspot_datetime
from hubsync.models.schemas import Action, ActionName, EntityType

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")


def filter_null_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in data.items() if value is not None}


def parse_int_or_zero(value: Any) -> int:
    """Leading integer of a HubSpot numeric property, 0 when there is none."""
    if value is None:
        return 0
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def full_name(properties: Dict[str, Any]) -> str:
    return f"{properties.get('firstname') or ''} {properties.get('lastname') or ''}".strip()


def is_created(record: Dict[str, Any], watermark: Optional[datetime]) -> bool:
    if watermark is None:
        return True
    created_at = parse_hubspot_datetime(record.get("createdAt"))
    return created_at is not None and created_at > watermark


def _action_date(record: Dict[str, Any], created: bool) -> Optional[datetime]:
    return parse_hubspot_datetime(record.get("createdAt") if created else record.get("updatedAt"))


# ============================================================================
# COMPANIES
# ============================================================================

def normalize_company(
    record: Dict[str, Any],
    watermark: Optional[datetime],
    skew_seconds: Optional[int] = None
) -> Optional[Action]:
    properties = record.get("properties")
    if not properties:
        return None

    created = is_created(record, watermark)
    action_date = _action_date(record, created)
    if action_date is None:
        logger.debug(f"Skipping company {record.get('id')}: no timestamp")
        return None

    skew = settings.company_action_skew_seconds if skew_seconds is None else skew_seconds

    return Action(
        action_name=ActionName.for_entity(EntityType.COMPANIES.label, created),
        action_date=action_date - timedelta(seconds=skew),
        company_properties=filter_null_values({
            "company_id": record.get("id"),
            "company_domain": properties.get("domain"),
            "company_industry": properties.get("industry"),
        })
    )


# ============================================================================
# CONTACTS
# ============================================================================

def normalize_contact(
    record: Dict[str, Any],
    watermark: Optional[datetime],
    company_id: Optional[str] = None
) -> Optional[Action]:
    properties = record.get("properties")
    if not properties or not properties.get("email"):
        return None

    created = is_created(record, watermark)
    action_date = _action_date(record, created)
    if action_date is None:
        logger.debug(f"Skipping contact {record.get('id')}: no timestamp")
        return None

    user_properties = {
        "company_id": company_id,
        "contact_name": full_name(properties),
        "contact_title": properties.get("jobtitle"),
        "contact_source": properties.get("hs_analytics_source"),
        "contact_status": properties.get("hs_lead_status"),
        "contact_score": parse_int_or_zero(properties.get("hubspotscore")),
    }

    return Action(
        action_name=ActionName.for_entity(EntityType.CONTACTS.label, created),
        action_date=action_date,
        identity=properties["email"],
        user_properties=filter_null_values(user_properties)
    )


# ============================================================================
# MEETINGS
# ============================================================================

def meeting_contact_ids(record: Dict[str, Any]) -> List[str]:
    """Ids of the contacts associated with a meeting (list endpoint format)."""
    contacts = (record.get("associations") or {}).get("contacts") or {}
    return [str(item["id"]) for item in contacts.get("results") or [] if item.get("id")]


def build_attendees(contacts: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    attendees = []
    for contact in contacts:
        properties = contact.get("properties") or {}
        attendees.append(filter_null_values({
            "id": contact.get("id"),
            "email": properties.get("email"),
            "name": full_name(properties),
        }))
    return attendees


def normalize_meeting(
    record: Dict[str, Any],
    watermark: Optional[datetime],
    attendees: Optional[List[Dict[str, Any]]] = None
) -> Optional[Action]:
    properties = record.get("properties")
    if not properties:
        return None

    # Strictly newer than the watermark; re-visited meetings must not re-emit
    updated_at = parse_hubspot_datetime(record.get("updatedAt"))
    if watermark is not None and (updated_at is None or updated_at <= watermark):
        return None

    created = is_created(record, watermark)
    action_date = _action_date(record, created)
    if action_date is None:
        logger.debug(f"Skipping meeting {record.get('id')}: no timestamp")
        return None

    meeting_properties = {
        "meeting_id": record.get("id"),
        "meeting_title": properties.get("hs_meeting_title"),
        "meeting_body": properties.get("hs_meeting_body"),
        "meeting_start_time": properties.get("hs_meeting_start_time"),
        "meeting_end_time": properties.get("hs_meeting_end_time"),
        "meeting_location": properties.get("hs_meeting_location"),
        "meeting_outcome": properties.get("hs_meeting_outcome"),
        "meeting_external_url": properties.get("hs_meeting_external_url"),
        "meeting_internal_notes": properties.get("hs_internal_meeting_notes"),
        "meeting_timestamp": properties.get("hs_timestamp"),
        "meeting_attendees": attendees if attendees is not None else [],
    }

    return Action(
        action_name=ActionName.for_entity(EntityType.MEETINGS.label, created),
        action_date=action_date,
        meeting_properties=filter_null_values(meeting_properties)
    )


def to_action(
    record: Dict[str, Any],
    watermark: Optional[datetime],
    entity: EntityType,
    company_id: Optional[str] = None,
    attendees: Optional[List[Dict[str, Any]]] = None
) -> Optional[Action]:
    """
    Normalize one record of any entity type. Returns None for skipped records.
    """
    if entity is EntityType.COMPANIES:
        return normalize_company(record, watermark)
    if entity is EntityType.CONTACTS:
        return normalize_contact(record, watermark, company_id=company_id)
    return normalize_meeting(record, watermark, attendees=attendees)
