"""
Pydantic Schemas
Accounts, actions and sync results
"""

# Sync schemas
from .sync import EntityType, ExtractionResult, AccountSyncSummary

# Action schemas
from .action import Action, ActionName

# Account schemas
from .account import Account, LastPulledDates

__all__ = [
    # Sync
    "EntityType",
    "ExtractionResult",
    "AccountSyncSummary",
    # Action
    "Action",
    "ActionName",
    # Account
    "Account",
    "LastPulledDates",
]
