"""
Account Schemas
A connected HubSpot portal and its per-entity watermarks
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from hubsync.core.datetime_utils import parse_hubspot_datetime
from hubsync.models.schemas.sync import EntityType


class LastPulledDates(BaseModel):
    """
    Watermark per entity type.
    None means the entity was never pulled (full backfill on next run).
    """
    companies: Optional[datetime] = None
    contacts: Optional[datetime] = None
    meetings: Optional[datetime] = None

    @field_validator("companies", "contacts", "meetings", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_hubspot_datetime(value)


class Account(BaseModel):
    """
    HubSpot account as stored in the account store.

    last_pulled_dates is advanced by the orchestrator only for entities whose
    extraction completed; refresh_token is rotated by the TokenManager.
    """
    id: str
    refresh_token: str
    last_pulled_dates: LastPulledDates = Field(default_factory=LastPulledDates)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("last_pulled_dates", mode="before")
    @classmethod
    def _default_watermarks(cls, value: Any) -> Any:
        # Never-pulled accounts are stored with a null column
        return value if value is not None else {}

    def get_watermark(self, entity: EntityType) -> Optional[datetime]:
        return getattr(self.last_pulled_dates, entity.value)

    def set_watermark(self, entity: EntityType, value: datetime) -> None:
        setattr(self.last_pulled_dates, entity.value, value)
