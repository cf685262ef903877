"""
Text helpers for tags, hashtags, keywords and search highlighting.
"""
import html
import re
from typing import Iterable, List, Optional

HASHTAG_RE = re.compile(r"#([가-힣A-Za-z0-9_]+)")
KEYWORD_STRIP_RE = re.compile(r"[^가-힣A-Za-z0-9_]")
KEYWORD_MAX_LENGTH = 20


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Trim tags, drop a leading '#', empties and duplicates. Keeps first-seen order."""
    result: List[str] = []
    for raw in tags:
        tag = (raw or "").strip()
        if tag.startswith("#"):
            tag = tag[1:].strip()
        if tag and tag not in result:
            result.append(tag)
    return result


def extract_hashtags(text: str) -> List[str]:
    """
    Collect ``#word`` tokens from free text.

    "#GPT and #code_review, #GPT" -> ["GPT", "code_review"]
    """
    return normalize_tags(HASHTAG_RE.findall(text or ""))


def sanitize_keyword(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    keyword = KEYWORD_STRIP_RE.sub("", raw.strip())[:KEYWORD_MAX_LENGTH]
    return keyword or None


def highlight(text: str, keyword: str) -> str:
    """Wrap case-insensitive occurrences of ``keyword`` in <mark>, escaping the rest."""
    if not keyword.strip():
        return html.escape(text)
    pattern = re.compile(re.escape(keyword), re.IGNORECASE)
    out = []
    last = 0
    for match in pattern.finditer(text):
        out.append(html.escape(text[last:match.start()]))
        out.append(f"<mark>{html.escape(match.group(0))}</mark>")
        last = match.end()
    out.append(html.escape(text[last:]))
    return "".join(out)


def like_pattern(term: str) -> str:
    """``%term%`` with LIKE wildcards in ``term`` escaped by backslash."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
