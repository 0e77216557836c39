"""
Exception hierarchy for the HubSpot sync engine.

Recovery boundaries:
- TokenRefreshError at account start: the account is skipped
- Any error inside one entity extraction: that entity yields zero actions
- NoAccountsError: the run fails loudly
"""
from typing import Optional


class HubSyncError(Exception):
    """Base class for every error raised by hubsync."""


class CRMApiError(HubSyncError):
    """HubSpot request failed (after the client's own retry budget)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(HubSyncError):
    """HubSpot answered with an empty or non-object envelope."""


class TokenRefreshError(HubSyncError):
    """Refresh token could not be exchanged for an access token."""


class PaginationStalledError(HubSyncError):
    """Re-windowing at the search offset cap would not advance the window."""


class DeliveryError(HubSyncError):
    """The sink rejected a batch of actions."""


class NoAccountsError(HubSyncError):
    """No HubSpot accounts are configured."""


class PartialDeliveryError(DeliveryError):
    """
    A sink committed the first `delivered` actions of a batch before failing.
    The queue keeps only the rest for the next attempt.
    """

    def __init__(self, message: str, delivered: int = 0):
        super().__init__(message)
        self.delivered = delivered
