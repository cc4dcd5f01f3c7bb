from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class LLMConfig:
    REQUEST_TIMEOUT: float = 60.0
    MAX_ITERATIONS: int = 8
    RETRY_ATTEMPTS: int = 3
    EXCERPT_CHARS: int = 300
    DEFAULT_CONFIDENCE: float = 0.5
    FINAL_DIGEST_CHARS_PER_TOOL: int = 4000


@dataclass(frozen=True)
class ToolLimits:
    """Character budgets for text handed back to the model."""
    MAX_CONTENT_CHARS: int = 20000
    MIN_CONTENT_CHARS: int = 500
    MAX_HTML_BYTES: int = 2_000_000
    MAX_PDF_PAGE_CHARS: int = 12000
    MIN_PDF_PAGE_CHARS: int = 200
    MAX_WEB_SEARCH_CHARS: int = 10000
    MAX_SEARCH_RESULTS: int = 5
    MAX_TRACE_OUTPUT_CHARS: int = 2000
    PDF_CACHE_CAPACITY: int = 3


@dataclass(frozen=True)
class ToolTimeouts:
    """Timeout configurations for outbound tool requests."""
    READ_URL: float = 15.0
    READ_PDF: float = 20.0
    WEB_SEARCH: float = 15.0


@dataclass(frozen=True)
class RateLimitConfig:
    BASE_DELAY: float = 2.0
    MAX_DELAY: float = 30.0


@dataclass(frozen=True)
class OrchestrationConfig:
    CONCURRENCY: int = 5
    ITEM_TIMEOUT: float = 60.0
    QUICK_VERIFY_TIMEOUT: float = 20.0
    SUBSCRIBER_SEND_TIMEOUT: float = 5.0


@dataclass(frozen=True)
class BrowserHeaders:
    USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    ACCEPT_HTML: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    ACCEPT_PDF: str = "application/pdf,*/*;q=0.8"
    ACCEPT_LANGUAGE: str = "en-US,en;q=0.9"

    def for_html(self) -> Dict[str, str]:
        return {
            "User-Agent": self.USER_AGENT,
            "Accept": self.ACCEPT_HTML,
            "Accept-Language": self.ACCEPT_LANGUAGE,
        }

    def for_pdf(self) -> Dict[str, str]:
        return {
            "User-Agent": self.USER_AGENT,
            "Accept": self.ACCEPT_PDF,
            "Accept-Language": self.ACCEPT_LANGUAGE,
        }


@dataclass(frozen=True)
class SearchAPIConfig:
    ENDPOINT: str = "https://api.linkup.so/v1/search"
    DEPTH: str = "standard"
    OUTPUT_TYPE: str = "searchResults"
    ERROR_DETAIL_CHARS: int = 200


@dataclass(frozen=True)
class HTMLExtractionConfig:
    SKIP_TAGS: frozenset = frozenset({
        "script", "style", "noscript", "nav", "footer", "header", "aside",
    })
    SKIP_CLASSES: frozenset = frozenset({
        "ad", "advertisement", "sidebar", "menu", "navigation",
    })
    VOID_TAGS: frozenset = frozenset({
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "source", "track", "wbr",
    })
    # Main-content markers, highest priority first: (attribute, value).
    CONTENT_MARKERS: tuple = (
        ("tag", "article"),
        ("tag", "main"),
        ("class", "article-content"),
        ("class", "post-content"),
        ("class", "entry-content"),
        ("class", "content"),
        ("id", "content"),
        ("class", "article-body"),
        ("class", "story-body"),
        ("role", "main"),
    )


LLM_CONFIG = LLMConfig()
TOOL_LIMITS = ToolLimits()
TOOL_TIMEOUTS = ToolTimeouts()
RATE_LIMIT_CONFIG = RateLimitConfig()
ORCHESTRATION_CONFIG = OrchestrationConfig()
BROWSER_HEADERS = BrowserHeaders()
SEARCH_API_CONFIG = SearchAPIConfig()
HTML_EXTRACTION = HTMLExtractionConfig()
