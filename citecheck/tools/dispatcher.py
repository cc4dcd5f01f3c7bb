from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from citecheck.config import logger
from citecheck.models import VerificationContext
from citecheck.utils.rate_limiter import BackoffRateLimiter, get_rate_limiter
from .definitions import TOOL_NAMES
from .earlier_footnotes import get_earlier_footnotes
from .read_pdf_page import PdfCache, get_pdf_cache, read_pdf_page
from .read_url import read_url
from .web_search import web_search


@dataclass(frozen=True)
class ToolContext:
    """Everything one claim's tool calls may depend on, passed explicitly per call."""
    verification: Optional[VerificationContext] = None
    search_api_key: Optional[str] = None
    rate_limiter: BackoffRateLimiter = field(default_factory=lambda: get_rate_limiter("web_search"))
    pdf_cache: PdfCache = field(default_factory=get_pdf_cache)


async def dispatch_tool_call(name: str, args: Optional[Dict[str, Any]], context: ToolContext) -> str:
    """Run one tool requested by the model. Always returns text usable as model input."""
    if name not in TOOL_NAMES:
        logger.warning("Model requested undeclared tool %s", name)
        return f"Unknown tool: {name}"

    args = args or {}
    try:
        if name == "web_search":
            return await web_search(args.get("query", ""), context.search_api_key, context.rate_limiter)
        if name == "read_url":
            url = args.get("url")
            if not url:
                return "read_url requires a url argument."
            return await read_url(str(url))
        if name == "read_pdf_page":
            url = args.get("url")
            if not url:
                return "read_pdf_page requires a url argument."
            return await read_pdf_page(str(url), args.get("page"), context.pdf_cache)
        return get_earlier_footnotes(context.verification, args.get("specific_index"))
    except Exception as e:
        logger.exception("Error executing tool %s", name)
        return f"Tool {name} failed unexpectedly: {e}. Try a different approach."
