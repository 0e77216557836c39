"""
Action delivery sinks
Supabase storage, JSONL debugging and log-only delivery
"""
import json
import logging
from collections import Counter
from typing import List, Protocol, Sequence

from supabase import Client

from hubsync.core.exceptions import PartialDeliveryError
from hubsync.models.schemas import Action

logger = logging.getLogger(__name__)


class ActionSink(Protocol):
    """
    Downstream consumer of action batches. Called synchronously by the queue.

    A sink that commits part of a batch before failing raises
    PartialDeliveryError so those actions are not handed over again.
    """

    def deliver(self, actions: List[Action]) -> None:
        ...


# ============================================================================
# LOGGING
# ============================================================================

class LoggingSink:
    """Logs each batch; used when no storage is configured."""

    def deliver(self, actions: List[Action]) -> None:
        breakdown = Counter(action.action_name.value for action in actions)
        logger.info(f"📦 Delivered {len(actions)} actions: {dict(breakdown)}")


# ============================================================================
# JSONL DEBUGGING
# ============================================================================

class JsonlSink:
    """Append one JSON line per action; a batch is written in a single call."""

    def __init__(self, path: str = "./actions.jsonl"):
        self.path = path

    def deliver(self, actions: List[Action]) -> None:
        lines = "".join(json.dumps(action.to_payload()) + "\n" for action in actions)
        with open(self.path, "a") as f:
            f.write(lines)


# ============================================================================
# SUPABASE
# ============================================================================

class SupabaseSink:
    """
    Bulk insert actions into the actions table.

    Row shape: {"action_name", "action_date", "payload"}.
    Chunks are inserted in order; a failing chunk raises PartialDeliveryError
    carrying the number of actions already inserted.
    """

    def __init__(self, supabase: Client, table: str = "actions", chunk_size: int = 500):
        self.supabase = supabase
        self.table = table
        self.chunk_size = chunk_size

    def deliver(self, actions: List[Action]) -> None:
        rows = [
            {
                "action_name": action.action_name.value,
                "action_date": action.action_date.isoformat(),
                "payload": action.to_payload(),
            }
            for action in actions
        ]

        inserted = 0
        for start in range(0, len(rows), self.chunk_size):
            chunk = rows[start:start + self.chunk_size]
            try:
                self.supabase.table(self.table).insert(chunk).execute()
            except Exception as e:
                logger.error(f"❌ Insert into {self.table} failed after {inserted}/{len(rows)} actions: {e}")
                raise PartialDeliveryError(f"Insert into {self.table} failed: {e}", delivered=inserted) from e
            inserted += len(chunk)

        logger.info(f"✅ Inserted {inserted} actions into {self.table}")


# ============================================================================
# FAN-OUT
# ============================================================================

class CompositeSink:
    """
    Deliver every batch to a primary sink, then to secondary sinks.

    Only the primary decides whether a batch was delivered. Secondary sinks
    (JSONL copies, logs) get what the primary committed; their failures are
    logged and do not cause a redelivery.
    """

    def __init__(self, sinks: Sequence[ActionSink]):
        if not sinks:
            raise ValueError("CompositeSink needs at least one sink")
        self.primary, *self.secondary = sinks

    def deliver(self, actions: List[Action]) -> None:
        try:
            self.primary.deliver(actions)
        except PartialDeliveryError as e:
            self._copy_to_secondary(actions[:e.delivered])
            raise
        self._copy_to_secondary(actions)

    def _copy_to_secondary(self, actions: List[Action]) -> None:
        if not actions:
            return
        for sink in self.secondary:
            try:
                sink.deliver(actions)
            except Exception as e:
                logger.error(f"❌ Secondary sink {type(sink).__name__} failed for {len(actions)} actions: {e}")
