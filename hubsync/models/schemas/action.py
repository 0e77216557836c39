"""
Action Schemas
Normalized, timestamped events produced from CRM records
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActionName(str, Enum):
    COMPANY_CREATED = "Company Created"
    COMPANY_UPDATED = "Company Updated"
    CONTACT_CREATED = "Contact Created"
    CONTACT_UPDATED = "Contact Updated"
    MEETING_CREATED = "Meeting Created"
    MEETING_UPDATED = "Meeting Updated"

    @classmethod
    def for_entity(cls, label: str, created: bool) -> "ActionName":
        """ActionName.for_entity("Contact", True) -> ActionName.CONTACT_CREATED"""
        return cls(f"{label} {'Created' if created else 'Updated'}")

    @property
    def label(self) -> str:
        """Entity label of the action ("Company", "Contact", "Meeting")."""
        return self.value.split(" ", 1)[0]


class Action(BaseModel):
    """
    One action ready for delivery.

    Exactly one payload group is set per action:
    - companies: company_properties
    - contacts: identity + user_properties
    - meetings: meeting_properties
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action_name: ActionName = Field(alias="actionName")
    action_date: datetime = Field(alias="actionDate")
    include_in_analytics: int = Field(default=0, alias="includeInAnalytics")
    identity: Optional[str] = None
    user_properties: Optional[Dict[str, Any]] = Field(default=None, alias="userProperties")
    company_properties: Optional[Dict[str, Any]] = Field(default=None, alias="companyProperties")
    meeting_properties: Optional[Dict[str, Any]] = Field(default=None, alias="meetingProperties")

    def to_payload(self) -> Dict[str, Any]:
        """Wire format: camelCase keys, unset payload groups omitted, ISO dates."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

