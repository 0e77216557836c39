"""
Bounded action queue
Buffers normalized actions and hands them to the sink in batches

Every enqueued action reaches the sink exactly once, either through a
threshold flush or through the final drain. A failed delivery puts the
uncommitted part of the batch back at the head of the buffer so a later
drain can retry it.
"""
import asyncio
import logging
from typing import Iterable, List, Optional, Set

from hubsync.core.config import settings
from hubsync.core.exceptions import DeliveryError, PartialDeliveryError
from hubsync.models.schemas import Action, ActionName
from hubsync.services.sync.persistence import ActionSink

logger = logging.getLogger(__name__)


class ActionQueue:
    def __init__(self, sink: ActionSink, flush_threshold: Optional[int] = None):
        self.sink = sink
        self.flush_threshold = flush_threshold or settings.flush_threshold
        self._buffer: List[Action] = []
        self._lock = asyncio.Lock()
        self.enqueued_count = 0
        self.delivered_count = 0
        self.deliveries = 0

    @property
    def pending_count(self) -> int:
        return len(self._buffer)

    def pending_action_names(self) -> Set[ActionName]:
        """Action names still waiting in the buffer (undelivered after a failure)."""
        return {action.action_name for action in self._buffer}

    async def enqueue(self, action: Action) -> None:
        await self.enqueue_many([action])

    async def enqueue_many(self, actions: Iterable[Action]) -> None:
        """
        Append actions; deliver a batch every time the buffer reaches the threshold.

        Raises:
            DeliveryError: the sink failed (actions stay buffered)
        """
        async with self._lock:
            for action in actions:
                self._buffer.append(action)
                self.enqueued_count += 1
            self._flush_full_batches()

    async def try_flush(self) -> int:
        """Deliver full batches if the threshold is reached; returns actions delivered."""
        async with self._lock:
            return self._flush_full_batches()

    async def drain(self) -> int:
        """
        Wait for in-flight queue work, then deliver whatever is left.

        Returns:
            Number of actions delivered by this drain
        """
        async with self._lock:
            delivered = self._flush_full_batches()
            if self._buffer:
                delivered += self._deliver(len(self._buffer))
            return delivered

    # ============================================================================
    # INTERNALS (caller holds the lock)
    # ============================================================================

    def _flush_full_batches(self) -> int:
        delivered = 0
        while len(self._buffer) >= self.flush_threshold:
            delivered += self._deliver(self.flush_threshold)
        return delivered

    def _deliver(self, size: int) -> int:
        # Snapshot and clear before handing off
        batch, self._buffer = self._buffer[:size], self._buffer[size:]
        logger.info("inserting actions to sink", extra={"count": len(batch)})

        try:
            self.sink.deliver(batch)
        except Exception as e:
            committed = e.delivered if isinstance(e, PartialDeliveryError) else 0
            self._buffer = batch[committed:] + self._buffer
            self.delivered_count += committed
            logger.error(
                f"❌ Failed to deliver {len(batch) - committed} of {len(batch)} actions: {e}",
                extra={"operation": "deliverActions"}
            )
            raise DeliveryError(f"Sink rejected {len(batch) - committed} of {len(batch)} actions") from e

        self.delivered_count += len(batch)
        self.deliveries += 1
        return len(batch)
