"""Single-word topic suggestion for new prompts, using a small local model through Ollama."""
import logging
from typing import List, Optional

import httpx
from ollama import AsyncClient as OllamaClient, ResponseError as OllamaResponseError

from prompt_manager.config import settings
from prompt_manager.utils.text import extract_hashtags, normalize_tags, sanitize_keyword

logger = logging.getLogger(__name__)

ollama_client = OllamaClient(host=settings.OLLAMA_HOST)

_SYSTEM_PROMPT = (
    "You label prompts with their core topic. Reply with exactly one word "
    "(for example: translation, summary, coding, writing, analysis). No explanation."
)


async def suggest_keyword(title: Optional[str], content: Optional[str], client=None) -> Optional[str]:
    """Best-effort: any failure yields None."""
    text = "\n".join(part for part in (title, content) if part)
    if not text.strip():
        return None

    client = client or ollama_client
    try:
        response = await client.chat(
            model=settings.KEYWORD_MODEL,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": f"Title: {title or ''}\nContent: {(content or '')[:500]}"},
            ],
            options={"temperature": 0.2, "num_predict": 20},
        )
        raw = response["message"]["content"]
    except (OllamaResponseError, httpx.HTTPError, ConnectionError, KeyError, TypeError) as exc:
        logger.error("Keyword suggestion failed: %s", exc)
        return None

    return sanitize_keyword(raw)


async def enrich_tags(
    title: str,
    content: str,
    tags: List[str],
    merge_hashtags: bool = False,
    suggest: bool = False,
    client=None,
) -> List[str]:
    """
    Final tag list for a save: the given tags, optionally the hashtags found in
    title/content, optionally one AI keyword when the content is long enough.
    """
    result = normalize_tags(tags)
    if merge_hashtags:
        result = normalize_tags(result + extract_hashtags(f"{title} {content}"))
    if suggest and len((content or "").strip()) > settings.KEYWORD_MIN_CONTENT_LENGTH:
        keyword = await suggest_keyword(title, content, client=client)
        if keyword and keyword not in result:
            logger.info("AI keyword %r added to tags", keyword)
            result.append(keyword)
    return result
