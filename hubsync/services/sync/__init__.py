"""
HubSpot Sync System
Incremental extraction of companies, contacts and meetings into actions
"""
from hubsync.services.sync.oauth import TokenManager
from hubsync.services.sync.pagination import EntityConfig, PageCursor, iter_pages
from hubsync.services.sync.queue import ActionQueue
from hubsync.services.sync.persistence import ActionSink, LoggingSink, JsonlSink, SupabaseSink, CompositeSink
from hubsync.services.sync.database import AccountStore, SupabaseAccountStore

__all__ = [
    "TokenManager",
    "EntityConfig",
    "PageCursor",
    "iter_pages",
    "ActionQueue",
    "ActionSink",
    "LoggingSink",
    "JsonlSink",
    "SupabaseSink",
    "CompositeSink",
    "AccountStore",
    "SupabaseAccountStore",
]
