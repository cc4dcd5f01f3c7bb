from .read_url import read_url
from .read_pdf_page import read_pdf_page, PdfCache, get_pdf_cache
from .web_search import web_search
from .earlier_footnotes import get_earlier_footnotes
from .definitions import TOOL_DEFINITIONS, TOOL_NAMES
from .dispatcher import ToolContext, dispatch_tool_call

__all__ = [
    "read_url",
    "read_pdf_page",
    "PdfCache",
    "get_pdf_cache",
    "web_search",
    "get_earlier_footnotes",
    "TOOL_DEFINITIONS",
    "TOOL_NAMES",
    "ToolContext",
    "dispatch_tool_call",
]
