"""
Data Source Providers
HTTP clients for external CRM APIs
"""
from hubsync.services.sync.providers.hubspot import HubSpotClient

__all__ = [
    "HubSpotClient",
]
