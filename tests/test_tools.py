import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
from ollama import ResponseError
from redis.exceptions import ConnectionError as RedisConnectionError

from prompt_manager.schemas.tool import PageInfo
from prompt_manager.services import keyword_service, page_info_service
from prompt_manager.services.keyword_service import enrich_tags, suggest_keyword
from prompt_manager.services.page_info_service import fetch_page_info, normalize_url, parse_page_html


def test_normalize_url():
    assert normalize_url("example.com") == "https://example.com"
    assert normalize_url(" http://example.com ") == "http://example.com"
    assert normalize_url("ftp://example.com") is None
    assert normalize_url("") is None


def test_parse_page_html_prefers_open_graph():
    html = """
    <html><head>
      <title>Plain title</title>
      <meta property="og:title" content=" OG title ">
      <meta property="og:image" content="https://example.com/og.png">
    </head></html>
    """
    assert parse_page_html(html) == PageInfo(thumbnail="https://example.com/og.png", title="OG title")


def test_parse_page_html_falls_back_to_title_tag():
    info = parse_page_html("<html><head><title> Hello </title></head><body></body></html>")
    assert info == PageInfo(thumbnail=None, title="Hello")


@pytest.fixture
def no_cache():
    with patch.object(page_info_service, "cache_get", AsyncMock(return_value=None)) as get, \
            patch.object(page_info_service, "cache_set", AsyncMock()) as put:
        yield get, put


@pytest.mark.asyncio
async def test_fetch_page_info_caches_result(no_cache):
    _, put = no_cache
    found = PageInfo(thumbnail="https://shot", title="Example")
    with patch.object(page_info_service, "_from_microlink", AsyncMock(return_value=found)) as fetch:
        info = await fetch_page_info("example.com")

    assert info == found
    assert fetch.call_args.args[1] == "https://example.com"
    put.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_page_info_uses_cache():
    cached = json.dumps({"thumbnail": "https://cached", "title": None})
    with patch.object(page_info_service, "cache_get", AsyncMock(return_value=cached)), \
            patch.object(page_info_service, "_from_microlink", AsyncMock()) as fetch:
        info = await fetch_page_info("https://example.com")

    assert info.thumbnail == "https://cached"
    fetch.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_page_info_failure_is_empty(no_cache):
    _, put = no_cache
    with patch.object(page_info_service, "_from_microlink", AsyncMock(side_effect=aiohttp.ClientError("down"))):
        info = await fetch_page_info("example.com")

    assert info == PageInfo()
    put.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_page_info_survives_cache_outage():
    found = PageInfo(title="Example")
    with patch.object(page_info_service, "cache_get", AsyncMock(side_effect=RedisConnectionError("refused"))), \
            patch.object(page_info_service, "cache_set", AsyncMock(side_effect=RedisConnectionError("refused"))), \
            patch.object(page_info_service, "_from_microlink", AsyncMock(return_value=found)):
        assert await fetch_page_info("example.com") == found


@pytest.mark.asyncio
async def test_fetch_page_info_direct_provider(no_cache):
    found = PageInfo(title="Direct")
    with patch.object(page_info_service.settings, "PAGE_INFO_PROVIDER", "direct"), \
            patch.object(page_info_service, "_from_page", AsyncMock(return_value=found)) as direct:
        assert await fetch_page_info("example.com") == found
    direct.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_page_info_rejects_invalid_url():
    assert await fetch_page_info("ftp://example.com") == PageInfo()


def fake_ollama(reply=None, error=None):
    client = MagicMock()
    client.chat = AsyncMock(return_value={"message": {"content": reply}}, side_effect=error)
    return client


@pytest.mark.asyncio
async def test_suggest_keyword_sanitizes_reply():
    client = fake_ollama("  Coding. ")
    assert await suggest_keyword("Refactor", "clean this code", client=client) == "Coding"
    assert client.chat.call_args.kwargs["model"] == keyword_service.settings.KEYWORD_MODEL


@pytest.mark.asyncio
async def test_suggest_keyword_failure_returns_none():
    assert await suggest_keyword("t", "c", client=fake_ollama(error=ResponseError("model not found"))) is None
    assert await suggest_keyword("", "", client=fake_ollama("unused")) is None


@pytest.mark.asyncio
async def test_enrich_tags_merges_hashtags_and_keyword():
    long_content = "Summarize the following meeting notes in three bullet points #work"
    tags = await enrich_tags(
        "Notes", long_content, ["daily"], merge_hashtags=True, suggest=True, client=fake_ollama("summary")
    )
    assert tags == ["daily", "work", "summary"]


@pytest.mark.asyncio
async def test_enrich_tags_skips_keyword_for_short_content():
    client = fake_ollama("summary")
    assert await enrich_tags("Notes", "short", [], suggest=True, client=client) == []
    client.chat.assert_not_called()
