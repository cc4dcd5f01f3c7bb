from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import WireModel


class Verdict(str, Enum):
    SUPPORTS = "supports"
    PARTIALLY_SUPPORTS = "partially_supports"
    DOES_NOT_SUPPORT = "does_not_support"
    CONTRADICTS = "contradicts"
    SOURCE_UNAVAILABLE = "source_unavailable"
    NOT_APPLICABLE = "not_applicable"

    @classmethod
    def coerce(cls, value: Any) -> "Verdict":
        """Map anything outside the closed set to source_unavailable."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.SOURCE_UNAVAILABLE


VERDICT_VALUES = [v.value for v in Verdict]


class ToolCallRecord(WireModel):
    """Audit trail entry for one tool invocation."""
    tool: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: str


class SourceResult(WireModel):
    url: Optional[str] = None
    title: Optional[str] = None
    accessed: bool = False
    verdict: Verdict = Verdict.SOURCE_UNAVAILABLE
    explanation: str = ""


class Verification(WireModel):
    """Result of verifying one footnote."""
    footnote_id: str
    verdict: Verdict
    confidence: float = Field(..., ge=0.0, le=1.0)
    explanation: str
    source_accessed: bool = False
    source_url: Optional[str] = None
    sources: Optional[List[SourceResult]] = None
    trace: Optional[List[ToolCallRecord]] = None

    def with_trace(self, trace: List[ToolCallRecord]) -> "Verification":
        return self.model_copy(update={"trace": list(trace)})


def unavailable(footnote_id: str, explanation: str, trace: Optional[List[ToolCallRecord]] = None) -> Verification:
    """Placeholder verification used whenever a claim cannot be assessed."""
    return Verification(
        footnote_id=footnote_id,
        verdict=Verdict.SOURCE_UNAVAILABLE,
        confidence=0.0,
        explanation=explanation,
        source_accessed=False,
        trace=list(trace) if trace is not None else None,
    )
