from .footnotes import (
    Footnote,
    VerificationContext,
    sort_footnotes,
)
from .verdicts import (
    Verdict,
    VERDICT_VALUES,
    ToolCallRecord,
    SourceResult,
    Verification,
    unavailable,
)
from .progress import (
    DocumentStatus,
    ProgressUpdate,
    ProgressSnapshot,
    DocumentResult,
    VerifyDocumentRequest,
    utc_now_iso,
)

__all__ = [
    "Footnote",
    "VerificationContext",
    "sort_footnotes",

    "Verdict",
    "VERDICT_VALUES",
    "ToolCallRecord",
    "SourceResult",
    "Verification",
    "unavailable",

    "DocumentStatus",
    "ProgressUpdate",
    "ProgressSnapshot",
    "DocumentResult",
    "VerifyDocumentRequest",
    "utc_now_iso",
]
