import json
import re
from typing import Any, Optional, Dict

_WHITESPACE = re.compile(r"\s+")
_DECODER = json.JSONDecoder(strict=False)


def extract_json_block(text: str) -> Optional[Dict[str, Any]]:
    """Extract the first JSON object from text, ignoring prose around it.

    Brace fragments that are not valid JSON (e.g. "see {appendix}") are skipped
    and the search resumes at the next opening brace.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        try:
            parsed, _ = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", start + 1)
    return None


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def truncate(text: str, limit: int, marker: str = "...") -> str:
    """Cut text to `limit` characters, appending `marker` when anything was dropped."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}{marker}"


def excerpt(text: str, limit: int) -> str:
    return truncate(collapse_whitespace(text), limit)


def normalize_url(url: str) -> str:
    clean_url = (url or "").strip()
    if not clean_url.startswith("http://") and not clean_url.startswith("https://"):
        clean_url = f"https://{clean_url}"
    return clean_url
