"""Footnote citation verification: an agentic tool loop per claim, run concurrently per document."""

__version__ = "0.1.0"
