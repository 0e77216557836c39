"""
Sync Schemas
Entity types, per-entity extraction results and per-account summaries
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from hubsync.models.schemas.action import Action


class EntityType(str, Enum):
    COMPANIES = "companies"
    CONTACTS = "contacts"
    MEETINGS = "meetings"

    @property
    def label(self) -> str:
        """Singular name used in action names ("Company", "Contact", "Meeting")."""
        return {
            EntityType.COMPANIES: "Company",
            EntityType.CONTACTS: "Contact",
            EntityType.MEETINGS: "Meeting",
        }[self]


class ExtractionResult(BaseModel):
    """
    Outcome of one entity extraction for one account.
    pulled_at is the upper bound of the extraction window and becomes the new
    watermark only when completed is True.
    """
    entity: EntityType
    actions: List[Action] = Field(default_factory=list)
    pulled_at: Optional[datetime] = None
    completed: bool = False
    error: Optional[str] = None


class AccountSyncSummary(BaseModel):
    """
    Result of syncing one account.
    """
    account_id: str
    status: str  # "success", "partial", "failed", "skipped"
    actions_enqueued: int = 0
    counts: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
