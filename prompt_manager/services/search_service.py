"""
Item search.

``SearchEngine`` runs one query: a leading ``#`` selects tag mode (partial,
case-insensitive tag match over a recent window), anything else runs a text
search and an exact tag search and merges them. ``SearchSession`` wraps the
engine for an interactive consumer with debouncing and a generation counter
so a superseded query can never overwrite a newer result.
"""
import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from prompt_manager.config import settings
from prompt_manager.exceptions import SearchUnavailable, StoreUnavailable
from prompt_manager.schemas.item import ItemOut
from prompt_manager.schemas.search import SearchHit, SearchMode, SearchResults
from prompt_manager.services.item_service import ItemRepository
from prompt_manager.utils.text import highlight

logger = logging.getLogger(__name__)

SEARCH_UNAVAILABLE_NOTICE = "Search is temporarily unavailable."


def parse_query(raw: Optional[str]) -> Tuple[SearchMode, str]:
    """Split a raw query into its mode and search term."""
    query = (raw or "").strip()
    if not query:
        return SearchMode.IDLE, ""
    if query.startswith("#"):
        term = query[1:]
        return (SearchMode.TAG, term) if term else (SearchMode.IDLE, "")
    return SearchMode.TEXT, query


def merge_unique(*result_sets: List[ItemOut]) -> List[ItemOut]:
    """Concatenate result sets, keeping the first occurrence of each id."""
    seen = set()
    merged = []
    for results in result_sets:
        for item in results:
            if item.id not in seen:
                seen.add(item.id)
                merged.append(item)
    return merged


class SearchEngine:
    def __init__(
        self,
        items: ItemRepository,
        text_limit: int = settings.SEARCH_TEXT_LIMIT,
        tag_limit: int = settings.SEARCH_TAG_LIMIT,
        tag_window: int = settings.SEARCH_TAG_WINDOW,
    ):
        self.items = items
        self.text_limit = text_limit
        self.tag_limit = tag_limit
        self.tag_window = tag_window

    async def _tag_search(self, owner: str, term: str) -> List[ItemOut]:
        needle = term.lower()
        window = await self.items.recent(owner, self.tag_window)
        return [item for item in window if any(needle in tag.lower() for tag in item.tags)]

    async def _text_search(self, owner: str, term: str) -> List[ItemOut]:
        text_hits, tag_hits = await asyncio.gather(
            self.items.search_text(owner, term, self.text_limit),
            self.items.find_by_tag(owner, term, self.tag_limit),
        )
        return merge_unique(text_hits, tag_hits)

    async def run(self, owner: str, raw: str) -> SearchResults:
        """Run the query, raising SearchUnavailable on backend failure."""
        mode, term = parse_query(raw)
        if mode == SearchMode.IDLE:
            return SearchResults(query=raw or "", mode=mode)

        try:
            if mode == SearchMode.TAG:
                found = await self._tag_search(owner, term)
            else:
                found = await self._text_search(owner, term)
        except StoreUnavailable as exc:
            raise SearchUnavailable(f"search for {raw!r} failed") from exc

        keyword = term if mode == SearchMode.TEXT else ""
        hits = [
            SearchHit(
                **item.model_dump(),
                highlighted_title=highlight(item.title, keyword) if keyword else None,
                highlighted_content=highlight(item.content, keyword) if keyword else None,
            )
            for item in found
        ]
        return SearchResults(query=raw, mode=mode, items=hits, is_hashtag_search=mode == SearchMode.TAG)

    async def search(self, owner: str, raw: str) -> SearchResults:
        """Like ``run`` but degrades failures to empty results with a notice."""
        try:
            return await self.run(owner, raw)
        except SearchUnavailable as exc:
            logger.error("%s: %s", exc, exc.__cause__)
            mode, _ = parse_query(raw)
            return SearchResults(
                query=raw,
                mode=mode,
                is_hashtag_search=mode == SearchMode.TAG,
                notice=SEARCH_UNAVAILABLE_NOTICE,
            )


class SearchSession:
    """
    Debounced search for one consumer.

    Each ``set_query`` cancels the pending search and schedules a new one after
    ``debounce`` seconds. Results are only applied when their generation is
    still the current one.
    """

    def __init__(
        self,
        engine: SearchEngine,
        owner: str,
        debounce: float = settings.SEARCH_DEBOUNCE_SECONDS,
        on_results: Optional[Callable[[SearchResults], object]] = None,
    ):
        self.engine = engine
        self.owner = owner
        self.debounce = debounce
        self.on_results = on_results
        self.query = ""
        self.results = SearchResults(query="", mode=SearchMode.IDLE)
        self.searching = False
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None

    @property
    def is_hashtag_search(self) -> bool:
        return self.query.strip().startswith("#")

    def set_query(self, raw: str):
        self.query = raw
        self._generation += 1
        self._cancel_pending()

        mode, _ = parse_query(raw)
        if mode == SearchMode.IDLE:
            self.searching = False
            self._pending = asyncio.ensure_future(self._apply(self._generation, SearchResults(query=raw, mode=mode)))
            return

        self._pending = asyncio.ensure_future(self._run(self._generation, raw))

    def _cancel_pending(self):
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _run(self, generation: int, raw: str):
        await asyncio.sleep(self.debounce)
        if generation != self._generation:
            return
        self.searching = True
        results = await self.engine.search(self.owner, raw)
        await self._apply(generation, results)

    async def _apply(self, generation: int, results: SearchResults):
        if generation != self._generation:
            logger.debug("Dropping stale results for %r", results.query)
            return
        self.searching = False
        self.results = results
        if self.on_results is not None:
            try:
                outcome = self.on_results(results)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception:
                logger.exception("Delivering results for %r failed", results.query)

    async def settle(self) -> SearchResults:
        """Wait for the pending search, if any, and return the current results."""
        while self._pending is not None and not self._pending.done():
            await asyncio.wait({self._pending})
        return self.results

    def close(self):
        self._generation += 1
        self._cancel_pending()
