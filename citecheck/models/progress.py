from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import Field

from .base import WireModel
from .footnotes import Footnote
from .verdicts import Verification

DocumentStatus = Literal["processing", "complete", "failed"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ProgressUpdate(WireModel):
    """Whole-snapshot replacement submitted by the orchestrator."""
    status: DocumentStatus
    footnote_count: int = Field(0, ge=0)
    verifications: List[Verification] = Field(default_factory=list)
    error: Optional[str] = None
    updated_at: Optional[str] = None


class ProgressSnapshot(ProgressUpdate):
    updated_at: str

    @classmethod
    def from_update(cls, update: ProgressUpdate) -> "ProgressSnapshot":
        return cls(
            status=update.status,
            footnote_count=update.footnote_count,
            verifications=list(update.verifications),
            error=update.error,
            updated_at=update.updated_at or utc_now_iso(),
        )

    def to_message(self) -> dict:
        return {"type": "progress", "data": self.to_wire()}


class DocumentResult(WireModel):
    """Per-document output persisted to the blob store."""
    document_id: str
    status: DocumentStatus
    footnotes: List[Footnote] = Field(default_factory=list)
    verifications: List[Verification] = Field(default_factory=list)
    error: Optional[str] = None


class VerifyDocumentRequest(WireModel):
    footnotes: List[Footnote]
