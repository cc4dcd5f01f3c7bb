import asyncio
import time
from html.parser import HTMLParser
from typing import Dict, List, Optional, Tuple

import httpx

from citecheck.config import BROWSER_HEADERS, HTML_EXTRACTION, TOOL_LIMITS, TOOL_TIMEOUTS, logger
from citecheck.utils.parsing import collapse_whitespace, normalize_url


def describe_http_failure(status_code: int, subject: str = "URL") -> str:
    """Human-readable diagnostic for a non-2xx fetch, phrased so the agent can recover."""
    if status_code in (401, 403):
        return (
            f"Access denied (HTTP {status_code}). This may be a paywalled source. "
            "Try searching for an open access version."
        )
    if status_code == 404:
        return (
            "Page not found (HTTP 404). The URL may be outdated. "
            "Try searching for the article by title."
        )
    return f"Failed to fetch {subject}: HTTP {status_code}. Try searching for an alternate source."


class _ReadableTextParser(HTMLParser):
    """Collects page title, all visible text, and the text of main-content regions."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.stack: List[Tuple[str, bool, Optional[int]]] = []
        self.skip_depth = 0
        self.title_parts: List[str] = []
        self.h1_parts: List[str] = []
        self.body_parts: List[str] = []
        # region id -> (marker priority, text parts)
        self.regions: Dict[int, Tuple[int, List[str]]] = {}

    @staticmethod
    def _content_priority(tag: str, attrs: Dict[str, str]) -> Optional[int]:
        classes = set(attrs.get("class", "").split())
        for priority, (kind, value) in enumerate(HTML_EXTRACTION.CONTENT_MARKERS):
            if (
                (kind == "tag" and tag == value)
                or (kind == "class" and value in classes)
                or (kind in ("id", "role") and attrs.get(kind) == value)
            ):
                return priority
        return None

    def handle_starttag(self, tag: str, attrs) -> None:
        t = (tag or "").lower()
        if t in HTML_EXTRACTION.VOID_TAGS:
            return
        attr_map = {k.lower(): (v or "") for k, v in attrs}
        classes = set(attr_map.get("class", "").split())
        skip = t in HTML_EXTRACTION.SKIP_TAGS or bool(classes & HTML_EXTRACTION.SKIP_CLASSES)

        region = None
        if not skip and not self.skip_depth:
            priority = self._content_priority(t, attr_map)
            if priority is not None:
                region = len(self.regions)
                self.regions[region] = (priority, [])

        self.stack.append((t, skip, region))
        if skip:
            self.skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        t = (tag or "").lower()
        if not any(name == t for name, _, _ in self.stack):
            return
        while self.stack:
            name, skip, _ = self.stack.pop()
            if skip:
                self.skip_depth -= 1
            if name == t:
                break

    def handle_data(self, data: str) -> None:
        open_tags = [name for name, _, _ in self.stack]
        if "title" in open_tags:
            self.title_parts.append(data)
            return
        if self.skip_depth:
            return
        if "h1" in open_tags:
            self.h1_parts.append(data)
        self.body_parts.append(data)
        for _, _, region in self.stack:
            if region is not None:
                self.regions[region][1].append(data)

    def main_text(self) -> str:
        for _, parts in sorted(self.regions.values(), key=lambda r: r[0]):
            text = collapse_whitespace(" ".join(parts))
            if text:
                return text
        return collapse_whitespace(" ".join(self.body_parts))


def extract_readable_text(html: str) -> Tuple[str, str]:
    """Return (title, text) for the main content region of an HTML page."""
    parser = _ReadableTextParser()
    parser.feed(html)
    parser.close()

    title = (
        collapse_whitespace("".join(parser.title_parts))
        or collapse_whitespace("".join(parser.h1_parts))
        or "Untitled"
    )
    return title, parser.main_text()


async def read_capped(response: httpx.Response, limit: int) -> bytes:
    """Read at most `limit` bytes of a streamed body; the rest is never downloaded."""
    chunks: List[bytes] = []
    size = 0
    async for chunk in response.aiter_bytes():
        chunks.append(chunk)
        size += len(chunk)
        if size >= limit:
            break
    return b"".join(chunks)[:limit]


async def read_url(url: str) -> str:
    """Fetch a web page and return its main text, or a diagnostic the agent can act on."""
    clean_url = normalize_url(url)
    started_at = time.monotonic()
    body = b""

    try:
        async with httpx.AsyncClient(
            timeout=TOOL_TIMEOUTS.READ_URL,
            follow_redirects=True,
            headers=BROWSER_HEADERS.for_html(),
        ) as client:
            async with client.stream("GET", clean_url) as response:
                content_type = response.headers.get("content-type", "")
                if response.is_success and "application/pdf" not in content_type:
                    body = await read_capped(response, TOOL_LIMITS.MAX_HTML_BYTES)
    except httpx.HTTPError as e:
        logger.info('read_url "%s" failed: %s', clean_url, e)
        return f"Error fetching URL: {e or type(e).__name__}. Try searching for this source using web_search."

    logger.info(
        'read_url "%s" -> %s in %dms',
        clean_url,
        response.status_code,
        (time.monotonic() - started_at) * 1000,
    )

    if not response.is_success:
        return describe_http_failure(response.status_code)

    if "application/pdf" in content_type:
        return (
            "PDF detected. Use read_pdf_page with the URL and a page number to extract text. "
            "Note: citation page numbers may not match the PDF's internal page order."
        )

    html = body.decode(response.encoding or "utf-8", errors="replace")
    try:
        title, text = await asyncio.to_thread(extract_readable_text, html)
    except Exception as e:
        logger.exception("Unexpected error extracting text from %s", clean_url)
        return f"Error fetching URL: could not parse page ({e}). Try searching for this source using web_search."

    if not text:
        return "No text content found. Try searching for this source by title."

    limit = TOOL_LIMITS.MAX_CONTENT_CHARS
    truncated = text[:limit]
    result = f"**Title**: {title}\n**URL**: {clean_url}\n\n**Content**:\n{truncated}"

    if len(truncated) < len(text):
        result += f"\n\n[Content truncated - showing first {limit:,} characters]"

    if len(truncated) < TOOL_LIMITS.MIN_CONTENT_CHARS:
        result += (
            "\n\n[Note: Very little content extracted. This may be a paywall, "
            "JavaScript-heavy site, or redirect page. Try searching for the content elsewhere.]"
        )

    return result
