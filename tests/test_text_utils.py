from prompt_manager.utils.text import extract_hashtags, highlight, like_pattern, normalize_tags, sanitize_keyword


def test_normalize_tags():
    assert normalize_tags([" gpt", "#code", "", "  ", "gpt", "GPT"]) == ["gpt", "code", "GPT"]


def test_extract_hashtags():
    assert extract_hashtags("#GPT and #code_review, #GPT") == ["GPT", "code_review"]
    assert extract_hashtags("한국어 #번역 test") == ["번역"]
    assert extract_hashtags("") == []
    assert extract_hashtags(None) == []


def test_sanitize_keyword():
    assert sanitize_keyword("  Translation. ") == "Translation"
    assert sanitize_keyword("a" * 30) == "a" * 20
    assert sanitize_keyword("!!!") is None
    assert sanitize_keyword(None) is None


def test_highlight_escapes_and_marks():
    assert highlight("GPT gpt", "gpt") == "<mark>GPT</mark> <mark>gpt</mark>"
    assert highlight("<i>", "") == "&lt;i&gt;"
    assert highlight("a+b", "+") == "a<mark>+</mark>b"


def test_like_pattern_escapes_wildcards():
    assert like_pattern("50%_off") == "%50\\%\\_off%"
    assert like_pattern("a\\b") == "%a\\\\b%"
