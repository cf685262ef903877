"""
Website metadata (preview image and title) for bookmarks.

Two providers: "microlink" asks the Microlink API for a rendered screenshot
(falling back to the page's og:image), "direct" downloads the page and reads
its Open Graph tags. Both are bounded by ``PAGE_INFO_TIMEOUT`` and return an
empty ``PageInfo`` instead of raising.
"""
import asyncio
import hashlib
import json
import logging
from typing import Optional

import aiohttp
from bs4 import BeautifulSoup
from redis.exceptions import RedisError

from prompt_manager.config import settings
from prompt_manager.schemas.tool import PageInfo
from prompt_manager.utils.redis import cache_get, cache_set

logger = logging.getLogger(__name__)

_UA = {"User-Agent": "Mozilla/5.0 (compatible; PromptManager/1.0; +bookmark-preview)"}


def normalize_url(raw: Optional[str]) -> Optional[str]:
    """Add https:// to scheme-less input; reject anything that is not http(s)."""
    url = (raw or "").strip()
    if not url:
        return None
    if "://" not in url:
        url = f"https://{url}"
    if not url.startswith(("http://", "https://")):
        return None
    return url


def parse_page_html(html: str) -> PageInfo:
    soup = BeautifulSoup(html, "html.parser")

    def meta(*names):
        for name in names:
            tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
            if tag and tag.get("content"):
                return tag["content"].strip()
        return None

    title = meta("og:title", "twitter:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip()
    return PageInfo(thumbnail=meta("og:image", "twitter:image"), title=title or None)


async def _from_microlink(session: aiohttp.ClientSession, url: str) -> PageInfo:
    headers = {"x-api-key": settings.MICROLINK_API_KEY} if settings.MICROLINK_API_KEY else {}
    params = {"url": url, "screenshot": "true"}
    async with session.get(settings.MICROLINK_API_URL, params=params, headers=headers) as response:
        if response.status != 200:
            logger.error("Microlink error: %s", response.status)
            return PageInfo()
        payload = await response.json()

    if payload.get("status") != "success":
        return PageInfo()

    data = payload.get("data") or {}
    screenshot = (data.get("screenshot") or {}).get("url")
    image = (data.get("image") or {}).get("url")
    return PageInfo(thumbnail=screenshot or image, title=data.get("title"))


async def _from_page(session: aiohttp.ClientSession, url: str) -> PageInfo:
    async with session.get(url, headers=_UA, allow_redirects=True) as response:
        if response.status != 200:
            logger.warning("Failed to fetch %s: Status %s", url, response.status)
            return PageInfo()
        html = await response.text()
    return parse_page_html(html)


async def fetch_page_info(raw_url: str) -> PageInfo:
    url = normalize_url(raw_url)
    if url is None:
        return PageInfo()

    cache_key = f"page_info:{hashlib.md5(url.encode()).hexdigest()}"
    try:
        cached = await cache_get(cache_key)
        if cached:
            return PageInfo(**json.loads(cached))
    except (RedisError, ValueError) as exc:
        logger.warning("Page info cache read failed for %s: %s", url, exc)

    fetch = _from_page if settings.PAGE_INFO_PROVIDER == "direct" else _from_microlink
    timeout = aiohttp.ClientTimeout(total=settings.PAGE_INFO_TIMEOUT)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            info = await fetch(session, url)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
        logger.error("Page info fetch for %s failed: %s", url, exc)
        return PageInfo()

    if info.thumbnail or info.title:
        try:
            await cache_set(cache_key, info.model_dump_json(), ex=settings.PAGE_INFO_CACHE_TTL)
        except RedisError as exc:
            logger.warning("Page info cache write failed for %s: %s", url, exc)
    return info
