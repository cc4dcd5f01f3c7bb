import asyncio
import time
from collections import OrderedDict
from typing import Any, Optional, Tuple

import fitz
import httpx

from citecheck.config import BROWSER_HEADERS, TOOL_LIMITS, TOOL_TIMEOUTS, logger
from citecheck.exceptions import ToolException
from citecheck.utils.parsing import collapse_whitespace, normalize_url
from .read_url import describe_http_failure


class PdfCache:
    """Bounded FIFO cache of raw PDF bytes keyed by normalized URL.

    Exists only so repeated page requests against one PDF don't re-download it.
    Reads do not refresh an entry's position; the oldest insert is evicted first.
    """

    def __init__(self, capacity: int = TOOL_LIMITS.PDF_CACHE_CAPACITY):
        if capacity < 1:
            raise ValueError("PdfCache capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[str, bytes]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return url in self._entries

    def get(self, url: str) -> Optional[bytes]:
        return self._entries.get(url)

    def put(self, url: str, data: bytes) -> None:
        if url in self._entries:
            self._entries[url] = data
            return
        while len(self._entries) >= self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("PdfCache evicted %s", evicted)
        self._entries[url] = data


_default_pdf_cache = PdfCache()


def get_pdf_cache() -> PdfCache:
    """Process-wide cache shared by every verification that does not inject its own."""
    return _default_pdf_cache


async def fetch_pdf_bytes(url: str, cache: PdfCache) -> bytes:
    clean_url = normalize_url(url)
    cached = cache.get(clean_url)
    if cached is not None:
        return cached

    started_at = time.monotonic()
    try:
        async with httpx.AsyncClient(
            timeout=TOOL_TIMEOUTS.READ_PDF,
            follow_redirects=True,
            headers=BROWSER_HEADERS.for_pdf(),
        ) as client:
            response = await client.get(clean_url)
    except httpx.HTTPError as e:
        raise ToolException("read_pdf_page", f"Error fetching PDF: {e or type(e).__name__}.")

    logger.info(
        'read_pdf_page "%s" -> %s in %dms',
        clean_url,
        response.status_code,
        (time.monotonic() - started_at) * 1000,
    )

    if not response.is_success:
        if response.status_code in (401, 403):
            raise ToolException(
                "read_pdf_page",
                f"Access denied (HTTP {response.status_code}). This PDF may be paywalled.",
            )
        if response.status_code == 404:
            raise ToolException("read_pdf_page", "PDF not found (HTTP 404). The URL may be outdated.")
        raise ToolException("read_pdf_page", describe_http_failure(response.status_code, "PDF"))

    content_type = response.headers.get("content-type", "")
    if "application/pdf" not in content_type:
        raise ToolException(
            "read_pdf_page",
            f"Expected a PDF but got content-type: {content_type or 'unknown'}.",
        )

    data = response.content
    cache.put(clean_url, data)
    return data


def extract_page_text(data: bytes, page_number: int) -> Tuple[int, Optional[str]]:
    """Return (page_count, text) parsing only the requested 1-based page.

    Text is None when the page is out of range.
    """
    with fitz.open(stream=data, filetype="pdf") as doc:
        page_count = doc.page_count
        if page_number > page_count:
            return page_count, None
        page = doc.load_page(page_number - 1)
        return page_count, page.get_text("text")


def _coerce_page_number(page: Any) -> Optional[int]:
    if isinstance(page, bool):
        return None
    if isinstance(page, float):
        if not page.is_integer():
            return None
        page = int(page)
    if isinstance(page, str) and page.strip().isdigit():
        page = int(page.strip())
    if not isinstance(page, int) or page < 1:
        return None
    return page


async def read_pdf_page(url: str, page: Any, cache: Optional[PdfCache] = None) -> str:
    """Extract text from one page of a PDF, or a diagnostic string."""
    page_number = _coerce_page_number(page)
    if page_number is None:
        return "Invalid page number. Provide a 1-based page number."

    cache = cache if cache is not None else get_pdf_cache()
    try:
        data = await fetch_pdf_bytes(url, cache)
    except ToolException as e:
        return e.details["reason"]

    try:
        page_count, raw_text = await asyncio.to_thread(extract_page_text, data, page_number)
    except Exception as e:
        logger.warning("Failed to parse PDF %s: %s", url, e)
        return f"Failed to parse PDF: {e}"

    if raw_text is None:
        return f"PDF has {page_count} pages. Requested page {page_number} is out of range."

    text = collapse_whitespace(raw_text)
    limit = TOOL_LIMITS.MAX_PDF_PAGE_CHARS
    truncated = f"{text[:limit]}..." if len(text) > limit else text

    result = f"**PDF**: {normalize_url(url)}\n**Page**: {page_number}/{page_count}\n\n{truncated}"
    if len(text) > limit:
        result += f"\n\n[Content truncated to {limit} characters]"
    if len(truncated) < TOOL_LIMITS.MIN_PDF_PAGE_CHARS:
        result += "\n\n[Note: Very little text extracted. This page may be scanned or image-based.]"

    return result
