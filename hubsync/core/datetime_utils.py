"""
Datetime helpers
HubSpot speaks ISO 8601 strings in payloads and epoch milliseconds in search filters
"""
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_hubspot_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a HubSpot timestamp.

    Accepts ISO strings ("2024-01-02T00:00:00.000Z"), epoch milliseconds
    (int or numeric string, as returned by hs_lastmodifieddate) and datetimes.
    Returns None for empty values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value).strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
    return ensure_utc(date_parser.isoparse(text))


def to_epoch_ms(dt: datetime) -> int:
    return int(ensure_utc(dt).timestamp() * 1000)
