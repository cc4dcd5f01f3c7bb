from typing import List, Optional, Tuple

from pydantic import Field, model_validator

from .base import WireModel


class Footnote(WireModel):
    """One ingested footnote: the claim in the body text and the citation backing it."""
    id: str
    document_order: int = Field(..., ge=1)
    display_label: Optional[str] = None
    claim_text: str
    citation_text: str

    @model_validator(mode="before")
    @classmethod
    def default_display_label(cls, data):
        if not isinstance(data, dict):
            return data
        if data.get("display_label") is None and data.get("displayLabel") is None:
            order = data.get("document_order", data.get("documentOrder"))
            if order is not None:
                data = {**data, "display_label": str(order)}
        return data


class VerificationContext(WireModel):
    """The full ordered footnote list plus the 0-based position of the claim under review."""
    ordered_footnotes: Tuple[Footnote, ...]
    current_position: int = Field(..., ge=0)

    def can_see(self, footnote_number: int) -> bool:
        return footnote_number <= self.current_position + 1

    def find(self, footnote_number: int) -> Optional[Footnote]:
        for footnote in self.ordered_footnotes:
            if footnote.document_order == footnote_number:
                return footnote
        return None


def sort_footnotes(footnotes: List[Footnote]) -> List[Footnote]:
    return sorted(footnotes, key=lambda f: f.document_order)
