"""
In-process change notifications for item mutations, optionally fanned out
to other worker processes through redis pub/sub.
"""
import asyncio
import inspect
import json
import logging
import uuid
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ValidationError as PayloadError
from redis.exceptions import RedisError

from prompt_manager.config import settings

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ANY = "*"


class ChangeEvent(BaseModel):
    table: str
    event: str
    owner: str
    record_id: Optional[str] = None


class Subscription:
    """Handle returned by ``ChangeFeed.subscribe``. Usable as a context manager."""

    def __init__(self, feed: "ChangeFeed", table: str, event: str, callback: Callable[[ChangeEvent], Any]):
        self._feed = feed
        self.table = table
        self.event = event
        self.callback = callback
        self.active = True

    def matches(self, change: ChangeEvent) -> bool:
        return self.active and self.table == change.table and self.event in (ANY, change.event)

    def unsubscribe(self):
        if self.active:
            self.active = False
            self._feed._remove(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()


class ChangeFeed:
    def __init__(self, redis=None, channel: str = settings.CHANGE_FEED_CHANNEL):
        self._subscriptions: List[Subscription] = []
        self._tasks = set()
        self._redis = redis
        self._channel = channel
        self._origin = uuid.uuid4().hex

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], Any], event: str = ANY) -> Subscription:
        subscription = Subscription(self, table, event, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription):
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, change: ChangeEvent):
        self._dispatch(change)

        if self._redis is not None:
            payload = {"origin": self._origin, **change.model_dump()}
            try:
                await self._redis.publish(self._channel, json.dumps(payload))
            except RedisError as exc:
                logger.warning("Could not fan out %s on %s: %s", change.event, change.table, exc)

    def _dispatch(self, change: ChangeEvent):
        for subscription in list(self._subscriptions):
            if not subscription.matches(change):
                continue
            try:
                result = subscription.callback(change)
            except Exception:
                logger.exception("Change subscriber for %s failed", change.table)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Change subscriber task failed: %s", task.exception())

    async def drain(self):
        """Wait for every callback scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def relay(self):
        """Replay events published by other processes into local subscribers."""
        if self._redis is None:
            return

        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        logger.info("Relaying change events from redis channel %s", self._channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    payload = json.loads(message["data"])
                    if payload.pop("origin", None) == self._origin:
                        continue
                    change = ChangeEvent(**payload)
                except (TypeError, ValueError, PayloadError) as exc:
                    logger.warning("Dropping malformed change event: %s", exc)
                    continue
                self._dispatch(change)
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
