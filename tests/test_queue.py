"""
Tests for the bounded action queue.
"""
import asyncio

import pytest

from hubsync.core.exceptions import DeliveryError
from hubsync.models.schemas import Action, ActionName
from hubsync.services.sync.queue import ActionQueue
from tests.conftest import RecordingSink
from tests.factories import ts


def make_actions(count: int):
    return [
        Action(action_name=ActionName.COMPANY_UPDATED, action_date=ts(minutes=i), company_properties={"company_id": str(i)})
        for i in range(count)
    ]


class TestActionQueue:

    @pytest.mark.asyncio
    async def test_threshold_flush_then_drain(self, sink):
        queue = ActionQueue(sink, flush_threshold=2000)

        await queue.enqueue_many(make_actions(2500))

        assert [len(batch) for batch in sink.batches] == [2000]
        assert queue.pending_count == 500

        await queue.drain()

        assert [len(batch) for batch in sink.batches] == [2000, 500]
        assert queue.pending_count == 0

    @pytest.mark.asyncio
    async def test_every_action_delivered_exactly_once(self, sink):
        queue = ActionQueue(sink, flush_threshold=3)
        actions = make_actions(10)

        for action in actions:
            await queue.enqueue(action)
        await queue.drain()

        assert sink.delivered == actions
        assert queue.enqueued_count == queue.delivered_count == 10
        assert queue.deliveries == 4

    @pytest.mark.asyncio
    async def test_concurrent_enqueues_do_not_lose_or_duplicate(self, sink):
        queue = ActionQueue(sink, flush_threshold=7)
        actions = make_actions(100)

        await asyncio.gather(*[queue.enqueue_many(actions[i:i + 10]) for i in range(0, 100, 10)])
        await queue.drain()

        delivered = [action.company_properties["company_id"] for action in sink.delivered]
        assert sorted(delivered, key=int) == [str(i) for i in range(100)]

    @pytest.mark.asyncio
    async def test_try_flush_below_threshold_delivers_nothing(self, sink):
        queue = ActionQueue(sink, flush_threshold=5)
        await queue.enqueue_many(make_actions(4))

        assert await queue.try_flush() == 0
        assert sink.batches == []

    @pytest.mark.asyncio
    async def test_drain_on_empty_queue_is_a_no_op(self, sink):
        queue = ActionQueue(sink, flush_threshold=5)

        assert await queue.drain() == 0
        assert sink.batches == []

    @pytest.mark.asyncio
    async def test_failed_delivery_keeps_batch_for_retry(self):
        sink = RecordingSink(fail_times=1)
        queue = ActionQueue(sink, flush_threshold=100)
        actions = make_actions(3)
        await queue.enqueue_many(actions)

        with pytest.raises(DeliveryError):
            await queue.drain()
        assert queue.pending_count == 3

        await queue.drain()

        assert sink.batches == [actions]
        assert queue.delivered_count == 3
