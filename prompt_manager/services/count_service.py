"""
Per-folder item counts kept live from the item change feed.
"""
import asyncio
import logging
from collections import Counter
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Sequence

from prompt_manager.exceptions import StoreUnavailable
from prompt_manager.schemas.folder import FolderOut
from prompt_manager.services.change_feed import ChangeEvent, ChangeFeed, Subscription
from prompt_manager.services.folder_tree import subtree_totals
from prompt_manager.services.item_service import TABLE, ItemRepository

logger = logging.getLogger(__name__)


class CountAggregator:
    """
    Holds the direct (non-recursive) item count of every folder for one owner.

    Every change notification triggers a full recompute. Notifications that
    arrive while a recompute is running are coalesced into one more pass, so
    the held map converges to the store after the last mutation.

    Use as ``async with CountAggregator(items, feed, owner) as counts:`` so the
    subscription is torn down with the consumer.
    """

    def __init__(
        self,
        items: ItemRepository,
        feed: Optional[ChangeFeed],
        owner: str,
        on_change: Optional[Callable[[Mapping[str, int]], object]] = None,
    ):
        self.items = items
        self.feed = feed
        self.owner = owner
        self.on_change = on_change
        self._counts: Dict[str, int] = {}
        self._subscription: Optional[Subscription] = None
        self._dirty = False
        self._worker: Optional[asyncio.Task] = None

    def current_counts(self) -> Mapping[str, int]:
        return MappingProxyType(self._counts)

    def totals(self, folders: Sequence[FolderOut]) -> Dict[str, int]:
        """Descendant-inclusive totals, derived at read time."""
        return subtree_totals(self._counts, folders)

    async def refresh(self) -> Mapping[str, int]:
        """Recompute the map from scratch. Keeps the previous map if the store fails."""
        try:
            refs = await self.items.folder_refs(self.owner)
        except StoreUnavailable as exc:
            logger.warning("Count refresh for %s failed, keeping previous counts: %s", self.owner, exc)
            return self.current_counts()

        self._counts = dict(Counter(ref for ref in refs if ref is not None))
        if self.on_change is not None:
            try:
                result = self.on_change(self.current_counts())
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Pushing counts for %s failed", self.owner)
        return self.current_counts()

    def _on_event(self, change: ChangeEvent):
        if change.owner != self.owner:
            return
        self._dirty = True
        if self._worker is None or self._worker.done():
            self._worker = asyncio.ensure_future(self._drain())

    async def _drain(self):
        while self._dirty:
            self._dirty = False
            await self.refresh()

    async def start(self) -> "CountAggregator":
        if self.feed is not None and self._subscription is None:
            self._subscription = self.feed.subscribe(TABLE, self._on_event)
        await self.refresh()
        return self

    async def settle(self):
        """Wait until no recompute is pending."""
        while self._worker is not None and not self._worker.done():
            await self._worker

    async def close(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
