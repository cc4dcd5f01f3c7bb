TOOL_DEFINITIONS = [
    {
        "name": "web_search",
        "description": (
            "Search the web for information about a citation, source, article, paper, or book. "
            "Use this to find URLs for sources, find archived versions of dead links, "
            "or locate academic papers by title/author."
        ),
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "query": {
                    "type": "STRING",
                    "description": "Search query - be specific with titles, authors, publication names",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "read_url",
        "description": (
            "Fetch and read the content of a URL. Use this to access web pages, articles, "
            "papers (if open access), and other online sources."
        ),
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "url": {"type": "STRING", "description": "URL to fetch and read"},
            },
            "required": ["url"],
        },
    },
    {
        "name": "read_pdf_page",
        "description": (
            "Download a PDF and extract text from a specific page. Page numbers are 1-based and "
            "follow the PDF's internal order (this may NOT match citation page numbering)."
        ),
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "url": {"type": "STRING", "description": "PDF URL to download"},
                "page": {
                    "type": "NUMBER",
                    "description": "Page number to extract (1-based; PDF internal order)",
                },
            },
            "required": ["url", "page"],
        },
    },
    {
        "name": "get_earlier_footnotes",
        "description": (
            "Retrieve a specific earlier footnote from the document by its index. Use this when the "
            "current citation references earlier footnotes with 'Id.', 'Ibid.', 'supra note X', "
            "or similar cross-references."
        ),
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "specific_index": {
                    "type": "NUMBER",
                    "description": "Footnote number to retrieve (e.g., for 'supra note 5', use 5). Required.",
                },
            },
            "required": ["specific_index"],
        },
    },
]

TOOL_NAMES = frozenset(tool["name"] for tool in TOOL_DEFINITIONS)
