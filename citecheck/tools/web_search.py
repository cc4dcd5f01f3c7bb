import time
from typing import Any, Dict, List, Optional

import httpx

from citecheck.config import SEARCH_API_CONFIG, TOOL_LIMITS, TOOL_TIMEOUTS, logger
from citecheck.exceptions import RateLimitException
from citecheck.utils.rate_limiter import BackoffRateLimiter, get_rate_limiter, parse_retry_after


def format_search_results(results: List[Dict[str, Any]]) -> str:
    lines = ["**Results:**"]
    for i, item in enumerate(results[: TOOL_LIMITS.MAX_SEARCH_RESULTS], start=1):
        title = item.get("name") or item.get("title") or "Result"
        url = item.get("url") or ""
        content = item.get("content") or item.get("snippet")
        entry = f"{i}. {title}\n   {url}"
        if content:
            entry += f"\n   {content}"
        lines.append(entry)
    return "\n".join(lines)


async def _post_search(query: str, api_key: str, limiter: BackoffRateLimiter) -> httpx.Response:
    await limiter.wait()
    body = {
        "q": query,
        "depth": SEARCH_API_CONFIG.DEPTH,
        "outputType": SEARCH_API_CONFIG.OUTPUT_TYPE,
        "includeImages": False,
        "maxResults": TOOL_LIMITS.MAX_SEARCH_RESULTS,
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    async with httpx.AsyncClient(timeout=TOOL_TIMEOUTS.WEB_SEARCH) as client:
        response = await client.post(SEARCH_API_CONFIG.ENDPOINT, headers=headers, json=body)

    if response.status_code == 429:
        retry_after = response.headers.get("retry-after")
        limiter.on_429(retry_after)
        raise RateLimitException("web_search", parse_retry_after(retry_after))
    return response


async def web_search(
    query: str,
    api_key: Optional[str],
    limiter: Optional[BackoffRateLimiter] = None,
) -> str:
    """Search the web through the rate-limited search API; never raises."""
    if not api_key:
        return "Search unavailable: LINKUP_API_KEY is not set."
    if not query or not str(query).strip():
        return "Search query is empty. Provide specific titles, authors or publication names."

    limiter = limiter if limiter is not None else get_rate_limiter("web_search")
    started_at = time.monotonic()

    try:
        response = await _post_search(query, api_key, limiter)
        logger.info(
            'web_search "%s" -> %s in %dms',
            query,
            response.status_code,
            (time.monotonic() - started_at) * 1000,
        )

        if not response.is_success:
            detail = (response.text or "")[: SEARCH_API_CONFIG.ERROR_DETAIL_CHARS]
            suffix = f" ({detail})" if detail else ""
            return f"Search failed with status {response.status_code}{suffix}. Try a different search query."

        limiter.on_success()
        results = response.json().get("results") or []
    except RateLimitException as e:
        logger.warning('web_search "%s" rate limited: %s', query, e.details)
        return (
            "Search failed with status 429 (rate limited). Wait before searching again, "
            "or try reading a known URL directly."
        )
    except Exception as e:
        logger.info('web_search "%s" failed in error: %s', query, e)
        return f"Search error: {e or type(e).__name__}. Try a simpler query."

    if not results:
        return (
            f'No results found for "{query}". Try:\n- Different keywords\n- Author names + title\n'
            "- Removing special characters\n- Searching for the publication name"
        )

    output = format_search_results(results)
    limit = TOOL_LIMITS.MAX_WEB_SEARCH_CHARS
    if len(output) > limit:
        return f"{output[:limit]}\n\n[Results truncated to {limit} characters]"
    return output
