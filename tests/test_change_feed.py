import asyncio
import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from prompt_manager.services.change_feed import DELETE, INSERT, ChangeEvent, ChangeFeed


def change(event=INSERT, owner="u1", table="prompts"):
    return ChangeEvent(table=table, event=event, owner=owner, record_id="p1")


@pytest.mark.asyncio
async def test_publish_reaches_matching_subscribers():
    feed = ChangeFeed()
    everything, deletes, other_table = [], [], []
    feed.subscribe("prompts", everything.append)
    feed.subscribe("prompts", deletes.append, event=DELETE)
    feed.subscribe("folders", other_table.append)

    await feed.publish(change(INSERT))
    await feed.publish(change(DELETE))

    assert [c.event for c in everything] == [INSERT, DELETE]
    assert [c.event for c in deletes] == [DELETE]
    assert other_table == []


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    feed = ChangeFeed()
    seen = []
    with feed.subscribe("prompts", seen.append):
        await feed.publish(change())
    await feed.publish(change())

    assert len(seen) == 1
    assert feed.subscriber_count == 0


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others():
    feed = ChangeFeed()
    seen = []
    feed.subscribe("prompts", MagicMock(side_effect=RuntimeError("boom")))
    feed.subscribe("prompts", seen.append)

    await feed.publish(change())

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_async_subscribers_are_drained():
    feed = ChangeFeed()
    seen = []

    async def slow(c):
        await asyncio.sleep(0)
        seen.append(c.record_id)

    feed.subscribe("prompts", slow)
    await feed.publish(change())
    await feed.drain()

    assert seen == ["p1"]


@pytest.mark.asyncio
async def test_publish_fans_out_to_redis():
    redis = MagicMock()
    redis.publish = AsyncMock()
    feed = ChangeFeed(redis=redis, channel="changes")

    await feed.publish(change())

    channel, payload = redis.publish.call_args.args
    assert channel == "changes"
    assert json.loads(payload)["record_id"] == "p1"


@pytest.mark.asyncio
async def test_redis_failure_still_delivers_locally():
    redis = MagicMock()
    redis.publish = AsyncMock(side_effect=RedisConnectionError("refused"))
    feed = ChangeFeed(redis=redis)
    seen = []
    feed.subscribe("prompts", seen.append)

    await feed.publish(change())

    assert len(seen) == 1


class FakePubSub:
    def __init__(self, messages):
        self.messages = messages
        self.subscribe = AsyncMock()
        self.unsubscribe = AsyncMock()
        self.aclose = AsyncMock()

    async def listen(self):
        for message in self.messages:
            yield message


@pytest.mark.asyncio
async def test_relay_dispatches_foreign_events_only():
    redis = MagicMock()
    feed = ChangeFeed(redis=redis, channel="changes")
    own = {"origin": feed._origin, **change(owner="self").model_dump()}
    foreign = {"origin": "elsewhere", **change(owner="remote").model_dump()}
    pubsub = FakePubSub([
        {"type": "subscribe", "data": 1},
        {"type": "message", "data": json.dumps(own)},
        {"type": "message", "data": "not json"},
        {"type": "message", "data": json.dumps({"origin": "elsewhere", "table": "prompts"})},
        {"type": "message", "data": json.dumps(foreign)},
    ])
    redis.pubsub.return_value = pubsub
    seen = []
    feed.subscribe("prompts", seen.append)

    await feed.relay()

    assert [c.owner for c in seen] == ["remote"]
    pubsub.subscribe.assert_awaited_once_with("changes")
    pubsub.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_relay_without_redis_returns():
    assert await ChangeFeed().relay() is None
